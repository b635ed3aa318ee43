from .workflow import ApprovalWorkflow

__all__ = ["ApprovalWorkflow"]
