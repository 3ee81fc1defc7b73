from .auth import User, SessionToken
from .contacts import Contact
from .catalog import Category, Brand, Style, ProductType, Color, Size, Product, ProductVariant, ProductImage
from .inventory import InventoryLedgerEntry
from .cart import Cart, CartItem
from .discounts import DiscountOffer, DiscountRule, Coupon
from .orders import Order, OrderItem
from .billing import PaymentTerm, CustomerInvoice, CustomerInvoiceLine, VendorBill, VendorBillLine, Payment
from .purchasing import PurchaseOrder, PurchaseOrderLine
from .settings import SystemSettings, DocumentSequence

__all__ = [
    'User', 'SessionToken',
    'Contact',
    'Category', 'Brand', 'Style', 'ProductType', 'Color', 'Size',
    'Product', 'ProductVariant', 'ProductImage',
    'InventoryLedgerEntry',
    'Cart', 'CartItem',
    'DiscountOffer', 'DiscountRule', 'Coupon',
    'Order', 'OrderItem',
    'PaymentTerm', 'CustomerInvoice', 'CustomerInvoiceLine', 'VendorBill', 'VendorBillLine', 'Payment',
    'PurchaseOrder', 'PurchaseOrderLine',
    'SystemSettings', 'DocumentSequence',
]
