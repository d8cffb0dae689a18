from bookkeeper.schemas.api import (  # noqa: F401
    AnalyticsResponse,
    IngestReport,
    IngestRequest,
    LineItemRecord,
    PeriodTotal,
    ReceiptList,
    ReceiptRecord,
    SeedStatus,
    SpendingSummary,
    StatusUpdateRequest,
    VendorRecord,
    VendorTotal,
)
from bookkeeper.schemas.auditor import (  # noqa: F401
    Answer,
    AnswerSource,
    AuditorReply,
    AuditorRequest,
    ChatHistory,
    ChatMessage,
    Classification,
    Intent,
    QueryPlan,
)
from bookkeeper.schemas.base import (  # noqa: F401
    Amount,
    CamelModel,
    ExtractionRecord,
    LineItem,
    PaymentMethod,
    Receipt,
    ReceiptHeader,
    ReceiptSource,
    ReceiptStatus,
    Reconciliation,
    VendorInfo,
)
from bookkeeper.schemas.ground_truth import CordGroundTruth, CordMenuItem  # noqa: F401
