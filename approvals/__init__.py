"""
Approvals feature.

Routes uploaded documents through an ordered chain of approvers, enforces the
approval state machine and produces the signed artifact after each approval.
Entry point: :class:`approvals.logic.approval_service.ApprovalService`.
"""
