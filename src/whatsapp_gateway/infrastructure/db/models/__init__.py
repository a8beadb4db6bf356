"""Import all models so Alembic can discover them via Base.metadata."""
from whatsapp_gateway.infrastructure.db.models.conversation import ConversationModel
from whatsapp_gateway.infrastructure.db.models.customer import CustomerModel
from whatsapp_gateway.infrastructure.db.models.lead import LeadEventModel, LeadScoreModel
from whatsapp_gateway.infrastructure.db.models.message import MessageModel
from whatsapp_gateway.infrastructure.db.models.template import MessageTemplateModel

__all__ = [
    "ConversationModel",
    "CustomerModel",
    "LeadEventModel",
    "LeadScoreModel",
    "MessageModel",
    "MessageTemplateModel",
]
