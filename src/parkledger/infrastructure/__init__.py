"""Infrastructure layer: ledger store and collaborator adapters"""
