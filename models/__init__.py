from models.user import User
from models.product import Product, ProductStatus
from models.transaction import Transaction, TransactionStatus, PaymentMethod, DeliveryMethod
from models.conversation import Conversation
from models.message import Message
from models.outbox import ProductStatusSync, SyncState
