# backend/models/product.py
from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base, utcnow
from models.category import product_categories
from utils.result import Error, ErrorKind, Result, insufficient_stock, not_found, validation_failed

PRIMARY_IMAGE_REMOVAL = Error(
    "Product.PrimaryImageRemoval",
    "The primary image cannot be removed; make another image primary first.",
    ErrorKind.CONFLICT,
)
IMAGE_ALREADY_PRIMARY = Error("Product.ImageAlreadyPrimary", "The image is already the primary image.", ErrorKind.CONFLICT)

# Model Product
# The inventory ledger: owns stock_quantity and the rules that guard it.
# Stock never goes negative; every deduction re-checks sufficiency first.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=False, default="")

    price = Column(Numeric(12, 2), CheckConstraint("price >= 0", name="ck_products_price"), nullable=False)
    stock_quantity = Column(Integer, CheckConstraint("stock_quantity >= 0", name="ck_products_stock"), nullable=False)

    added_date = Column(DateTime(timezone=True), default=utcnow)
    last_modified = Column(DateTime(timezone=True), default=utcnow)

    images = relationship("ProductImage", back_populates="product", cascade="all, delete-orphan")
    categories = relationship("Category", secondary=product_categories)

    @property
    def primary_image(self):
        return next((img for img in self.images if img.is_primary), None)

    def assert_sufficient_stock(self, requested: int) -> Result:
        """Read-only check that ``requested`` units are available."""
        if self.stock_quantity < requested:
            return Result.failure(insufficient_stock(self.name, self.stock_quantity, requested))
        return Result.success()

    def reduce_stock(self, quantity: int) -> Result:
        check = self.assert_sufficient_stock(quantity)
        if check.is_failure:
            return check
        self.stock_quantity -= quantity
        self.last_modified = utcnow()
        return Result.success()

    def update_info(self, name=None, description=None, price=None, stock_quantity=None) -> bool:
        """Apply the provided fields; returns False when nothing changed."""
        updated = False
        if name and name != self.name:
            self.name = name
            updated = True
        if description and description != self.description:
            self.description = description
            updated = True
        if price is not None and price != self.price:
            self.price = price
            updated = True
        if stock_quantity is not None and stock_quantity != self.stock_quantity:
            self.stock_quantity = stock_quantity
            updated = True
        if updated:
            self.last_modified = utcnow()
        return updated

    # ---- images ----
    def add_images(self, new_images) -> Result:
        """Attach ``new_images``; one marked primary takes over from the current primary."""
        primaries = [img for img in new_images if img.is_primary]
        if len(primaries) > 1:
            return Result.failure(validation_failed("AddProductImages.Validation", "Only one image can be marked as primary."))
        current = self.primary_image
        if not primaries and current is None:
            return Result.failure(validation_failed(
                "AddProductImages.Validation", "The product has no primary image; mark one of the new images as primary."
            ))
        if primaries and current is not None:
            current.is_primary = False
        self.images.extend(new_images)
        self.last_modified = utcnow()
        return Result.success()

    def remove_images(self, image_ids) -> Result:
        wanted = set(image_ids)
        found = [img for img in self.images if img.id in wanted]
        missing = wanted - {img.id for img in found}
        if missing:
            return Result.failure(not_found("ProductImage.NotFound", f"Images not found on this product: {sorted(missing)}"))
        if any(img.is_primary for img in found):
            return Result.failure(PRIMARY_IMAGE_REMOVAL)
        for img in found:
            self.images.remove(img)
        self.last_modified = utcnow()
        return Result.success()

    def change_primary_image(self, image_id: int) -> Result:
        target = next((img for img in self.images if img.id == image_id), None)
        if target is None:
            return Result.failure(not_found("ProductImage.NotFound", "The image does not belong to this product."))
        if target.is_primary:
            return Result.failure(IMAGE_ALREADY_PRIMARY)
        for img in self.images:
            img.is_primary = img is target
        self.last_modified = utcnow()
        return Result.success()

    # ---- categories ----
    def add_categories(self, categories) -> Result:
        assigned = {c.id for c in self.categories}
        duplicates = sorted(c.id for c in categories if c.id in assigned)
        if duplicates:
            return Result.failure(Error(
                "Product.CategoryAlreadyAssigned",
                f"Categories already assigned to this product: {duplicates}",
                ErrorKind.CONFLICT,
            ))
        self.categories.extend(categories)
        self.last_modified = utcnow()
        return Result.success()

    def remove_categories(self, category_ids) -> Result:
        wanted = set(category_ids)
        found = [c for c in self.categories if c.id in wanted]
        missing = wanted - {c.id for c in found}
        if missing:
            return Result.failure(not_found("Product.CategoryNotAssigned", f"Categories not assigned to this product: {sorted(missing)}"))
        for category in found:
            self.categories.remove(category)
        self.last_modified = utcnow()
        return Result.success()


# Image attached to a product; exactly one is primary when any exist
class ProductImage(Base):
    __tablename__ = "product_images"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False)
    location = Column(String, nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False)

    product = relationship("Product", back_populates="images")
