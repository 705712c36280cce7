"""
Module de Facturation (Invoices)

- Consolidation d'un ou plusieurs devis validés d'un même client
- Factures directes à lignes libres
- Suppression d'une facture sans paiement (les devis repassent en VALIDATED)
- Registre des paiements (voir app.modules.payments)

Réservé aux administrateurs.

Tables principales:
- invoices: Factures
- invoice_items: Lignes libres des factures directes
- payments: Paiements reçus
"""

from .models import Invoice, InvoiceItem, Payment
from .schemas import InvoiceFromDevisCreate, InvoiceDirectCreate, InvoiceOut, InvoiceDetail
from .service import InvoiceService

__all__ = [
    "Invoice", "InvoiceItem", "Payment",
    "InvoiceFromDevisCreate", "InvoiceDirectCreate", "InvoiceOut", "InvoiceDetail",
    "InvoiceService",
]
