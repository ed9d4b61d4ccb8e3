from .service_models import (
    DeployType,
    Visibility,
    STATUS_DELETING,
    ImagePath,
    Container,
    HelmChart,
    ServiceRecord,
    service_counter_key,
)
from .product_models import (
    ImageSearchingRule,
    CustomRule,
    KeyValue,
    EnvRenderKV,
    ServiceInfo,
    ProductFeature,
    ProductTemplate,
    DERIVED_FIELDS,
    ServiceOrderUpdate,
    MatchRulesUpdate,
)
from .render_models import RenderSet, Environment
from .views import Role, ContainerInfo, ServiceInfoView, ProductInfo, JobStatus, CleanupJob
