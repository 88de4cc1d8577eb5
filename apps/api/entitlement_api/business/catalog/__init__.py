from entitlement_api.business.catalog.api import router
from entitlement_api.business.catalog.errors import CatalogResolutionError
from entitlement_api.business.catalog.models import CatalogPlan, CatalogPlanAddOn, CatalogProduct
from entitlement_api.business.catalog.service import CatalogService, catalog_service

__all__ = [
    "router",
    "CatalogProduct",
    "CatalogPlan",
    "CatalogPlanAddOn",
    "CatalogResolutionError",
    "CatalogService",
    "catalog_service",
]
