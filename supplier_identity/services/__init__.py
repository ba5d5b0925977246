"""Business logic services.

Subpackages:
    - gtin: GTIN validation
    - matching: Identity matcher and product catalog
    - ingestion: Catalog ingestion into supplier items
    - corrections: Supplier correction lifecycle
    - triage: Review queue reads and terminal actions
"""
