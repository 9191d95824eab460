from __future__ import annotations

from siteflow.business.quotations.schemas import Quotation
from siteflow.platform.documents import BaseDocumentRepository


class QuotationRepository(BaseDocumentRepository[Quotation]):
    collection = "quotations"
    id_field = "quotation_id"
    schema = Quotation
