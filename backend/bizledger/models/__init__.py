from .tenancy import Organization, Client
from .auth import User, SessionToken
from .inventory import Product, InventoryMovement, GoodsEntry, GoodsEntryLine
from .sales import Sale, SaleLine, Commission, CashSession
from .finance import FinancialTransaction
from .service_orders import ServiceOrder, ServiceOrderLine
from .production import CostDriver, ProductionOrder, ProductionOrderLine, ProductionOrderCost
from .quotes import Quote, QuoteLine
from .customization import CustomFieldDefinition, CustomFieldValue
from .audit import AuditEvent, Notification

__all__ = [
    'Organization', 'Client',
    'User', 'SessionToken',
    'Product', 'InventoryMovement', 'GoodsEntry', 'GoodsEntryLine',
    'Sale', 'SaleLine', 'Commission', 'CashSession',
    'FinancialTransaction',
    'ServiceOrder', 'ServiceOrderLine',
    'CostDriver', 'ProductionOrder', 'ProductionOrderLine', 'ProductionOrderCost',
    'Quote', 'QuoteLine',
    'CustomFieldDefinition', 'CustomFieldValue',
    'AuditEvent', 'Notification',
]
