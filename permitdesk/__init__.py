"""PermitDesk: work-permit requests, approvals and location sharing."""
