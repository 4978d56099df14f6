from .contract import (  # noqa: F401
    ContractCreateSerializer,
    ContractSerializer,
    MilestoneSerializer,
    PayoutPreviewQuerySerializer,
)
from .tickets import (  # noqa: F401
    CancelTicketCreateSerializer,
    CancelTicketSerializer,
    ChangeTicketCreateSerializer,
    ChangeTicketSerializer,
    PaySerializer,
    RespondSerializer,
    RevisionTicketCreateSerializer,
    RevisionTicketSerializer,
)
from .uploads import (  # noqa: F401
    FinalUploadCreateSerializer,
    FinalUploadSerializer,
    MilestoneUploadCreateSerializer,
    ProgressUploadCreateSerializer,
    ProgressUploadMilestoneSerializer,
    ProgressUploadStandardSerializer,
    ReviewSerializer,
    RevisionUploadCreateSerializer,
    RevisionUploadSerializer,
)
from .resolution import (  # noqa: F401
    CounterproofSerializer,
    EscalateSerializer,
    ResolutionTicketSerializer,
    ResolveSerializer,
)
