"""Leave requests, the approval workflow and the balance ledger."""
