from .counter_dal import CounterDAL
from .product_dal import ProductTemplateDAL
from .render_dal import EnvironmentDAL, RenderSetDAL
from .service_dal import ServiceDAL

__all__ = ["CounterDAL", "ProductTemplateDAL", "EnvironmentDAL", "RenderSetDAL", "ServiceDAL"]
