from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from app.database.database import get_db
from app.dependencies.userDependencies import staff_dependency
from app.modules.auth.dependencies import require_admin, require_staff
from app.modules.auth.schemas import AuthContext
from app.modules.machines.models import MachineType
from app.modules.machines.service import MachinePricingService, MaterialService, FixedServiceService
from app.modules.machines.schemas import (
    MachinePricingUpdate, MachinePricingOut,
    MaterialCreate, MaterialUpdate, MaterialOut,
    FixedServiceCreate, FixedServiceUpdate, FixedServiceOut
)

machines_router = APIRouter(prefix="/machines", tags=["Machines"])
materials_router = APIRouter(prefix="/materials", tags=["Materials"])
services_router = APIRouter(prefix="/services", tags=["Fixed services"])


# Machine pricing
@machines_router.get("/pricing", response_model=List[MachinePricingOut])
def list_pricing(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    return MachinePricingService(db).get_all_pricing()


@machines_router.put("/pricing/{machine_type}", response_model=MachinePricingOut)
def update_pricing(
    machine_type: MachineType,
    pricing_data: MachinePricingUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """
    Fixe le prix unitaire d'une machine (créé s'il n'existe pas).
    Les devis déjà chiffrés gardent l'ancien prix.
    """
    return MachinePricingService(db).update_pricing(
        machine_type, pricing_data.price_per_unit, pricing_data.description
    )


@machines_router.post("/pricing/initialize", response_model=List[MachinePricingOut])
def initialize_pricing(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return MachinePricingService(db).initialize_default_pricing()


@machines_router.get("/my", response_model=List[MachineType])
def my_machines(auth_context: staff_dependency):
    """Machines que l'utilisateur courant peut chiffrer (toutes pour un admin)"""
    if auth_context.is_admin:
        return list(MachineType)
    return auth_context.allowed_machines


# Materials
@materials_router.get("/", response_model=List[MaterialOut])
def list_materials(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    return MaterialService(db).get_all()


@materials_router.post("/", response_model=MaterialOut, status_code=201)
def create_material(
    material_data: MaterialCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return MaterialService(db).create(material_data)


@materials_router.put("/{material_id}", response_model=MaterialOut)
def update_material(
    material_id: UUID,
    material_data: MaterialUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return MaterialService(db).update(material_id, material_data)


@materials_router.delete("/{material_id}", response_model=MaterialOut)
def deactivate_material(
    material_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """Suppression logique: la matière n'est plus proposée"""
    return MaterialService(db).deactivate(material_id)


# Fixed services
@services_router.get("/", response_model=List[FixedServiceOut])
def list_services(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    return FixedServiceService(db).get_all()


@services_router.post("/", response_model=FixedServiceOut, status_code=201)
def create_service(
    service_data: FixedServiceCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return FixedServiceService(db).create(service_data)


@services_router.put("/{service_id}", response_model=FixedServiceOut)
def update_service(
    service_id: UUID,
    service_data: FixedServiceUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return FixedServiceService(db).update(service_id, service_data)


@services_router.delete("/{service_id}", response_model=FixedServiceOut)
def deactivate_service(
    service_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return FixedServiceService(db).deactivate(service_id)
