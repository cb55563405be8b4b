from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional, Dict, Any

from tiendapos.shared.database.models import Categoria, EstadoProducto

class CategoriaRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, data: Dict[str, Any]) -> Categoria:
        categoria = Categoria(**data)
        self.db.add(categoria)
        self.db.flush()
        return categoria

    def get_by_id(self, categoria_id: int, for_update: bool = False) -> Optional[Categoria]:
        query = self.db.query(Categoria).filter(Categoria.id == categoria_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_by_nombre(self, nombre: str) -> Optional[Categoria]:
        """Búsqueda sin distinguir mayúsculas"""
        return self.db.query(Categoria).filter(
            func.lower(Categoria.nombre) == nombre.lower()
        ).first()

    def get_all(self, incluir_inactivas: bool = True) -> List[Categoria]:
        query = self.db.query(Categoria)
        if not incluir_inactivas:
            query = query.filter(Categoria.estado == EstadoProducto.ACTIVO.value)
        return query.order_by(Categoria.nombre).all()
