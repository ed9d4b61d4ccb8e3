from .permission_client import PermissionServiceClient
from .workflow_client import WorkflowServiceClient

__all__ = ["PermissionServiceClient", "WorkflowServiceClient"]
