from .sendgrid_client import SendGridClient
from .checkr_client import CheckrClient
from .idenfy_client import IdenfyClient

__all__ = ['SendGridClient', 'CheckrClient', 'IdenfyClient']
