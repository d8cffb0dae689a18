from bookkeeper.models.chat import ChatMessageModel
from bookkeeper.models.receipt import LineItemModel, ReceiptModel, VendorModel

__all__ = ["ChatMessageModel", "LineItemModel", "ReceiptModel", "VendorModel"]
