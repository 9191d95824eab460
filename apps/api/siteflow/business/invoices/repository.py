from __future__ import annotations

from siteflow.business.invoices.schemas import Invoice
from siteflow.platform.documents import BaseDocumentRepository


class InvoiceRepository(BaseDocumentRepository[Invoice]):
    collection = "invoices"
    id_field = "invoice_id"
    schema = Invoice

    def find_by_quotation(self, quotation_id: str) -> Invoice | None:
        for invoice in self.list():
            if invoice.quotation_id == quotation_id:
                return invoice
        return None
