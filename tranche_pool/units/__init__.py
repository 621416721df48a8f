"""Asset units hosted on the ledger: loan tokens and tranche shares."""
