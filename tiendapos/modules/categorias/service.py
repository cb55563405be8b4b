from typing import Optional
from fastapi import HTTPException
from sqlalchemy.orm import Session
import logging

from .repository import CategoriaRepository
from .schemas import (
    CategoriaCreate, CategoriaUpdate, CategoriaResponse,
    CategoriaDetailResponse, CategoriaListResponse
)
from tiendapos.core.exceptions import NotFoundError, ConflictError, DependencyFailureError
from tiendapos.shared.database.models import Categoria, EstadoProducto

logger = logging.getLogger(__name__)

class CategoriaService:
    """
    Catálogo de categorías de productos.

    El nombre es único sin distinguir mayúsculas. Eliminar es una baja lógica:
    la categoría pasa a inactiva y sus productos la conservan.
    """

    def __init__(self, db: Session, repository: Optional[CategoriaRepository] = None):
        self.db = db
        self.repository = repository or CategoriaRepository(db)

    def crear(self, data: CategoriaCreate) -> CategoriaDetailResponse:
        try:
            self._verificar_nombre_libre(data.nombre)
            categoria = self.repository.create({
                "nombre": data.nombre,
                "descripcion": data.descripcion,
                "estado": EstadoProducto.ACTIVO.value
            })
            self.db.commit()
            self.db.refresh(categoria)
            logger.info(f"Categoría {categoria.id} ({categoria.nombre}) creada")

            return CategoriaDetailResponse(
                success=True,
                message="Categoría creada exitosamente",
                categoria=CategoriaResponse.model_validate(categoria)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error creando categoría")
            raise DependencyFailureError(f"Error creando categoría: {str(e)}")

    def obtener(self, categoria_id: int) -> CategoriaDetailResponse:
        return CategoriaDetailResponse(
            success=True,
            message="Categoría encontrada",
            categoria=CategoriaResponse.model_validate(self._get(categoria_id))
        )

    def listar(self, incluir_inactivas: bool = True) -> CategoriaListResponse:
        categorias = self.repository.get_all(incluir_inactivas)
        return CategoriaListResponse(
            success=True,
            message="Categorías obtenidas exitosamente",
            data=[CategoriaResponse.model_validate(c) for c in categorias],
            total=len(categorias)
        )

    def actualizar(self, categoria_id: int, data: CategoriaUpdate) -> CategoriaDetailResponse:
        try:
            categoria = self._get(categoria_id, for_update=True)
            cambios = data.model_dump(exclude_unset=True)

            if cambios.get("nombre"):
                self._verificar_nombre_libre(cambios["nombre"], excluir_id=categoria.id)
                categoria.nombre = cambios["nombre"]
            if "descripcion" in cambios:
                categoria.descripcion = cambios["descripcion"]

            self.db.commit()
            self.db.refresh(categoria)

            return CategoriaDetailResponse(
                success=True,
                message="Categoría actualizada",
                categoria=CategoriaResponse.model_validate(categoria)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error actualizando categoría")
            raise DependencyFailureError(f"Error actualizando categoría: {str(e)}")

    def eliminar(self, categoria_id: int) -> CategoriaDetailResponse:
        """Baja lógica"""
        categoria = self._get(categoria_id, for_update=True)
        categoria.estado = EstadoProducto.INACTIVO.value
        self.db.commit()
        self.db.refresh(categoria)
        logger.info(f"Categoría {categoria_id} dada de baja")

        return CategoriaDetailResponse(
            success=True,
            message="Categoría eliminada",
            categoria=CategoriaResponse.model_validate(categoria)
        )

    def cambiar_estado(self, categoria_id: int) -> CategoriaDetailResponse:
        """Alternar activo/inactivo"""
        categoria = self._get(categoria_id, for_update=True)
        categoria.estado = (
            EstadoProducto.INACTIVO.value if categoria.is_active else EstadoProducto.ACTIVO.value
        )
        self.db.commit()
        self.db.refresh(categoria)

        return CategoriaDetailResponse(
            success=True,
            message=f"Categoría {'activada' if categoria.is_active else 'desactivada'}",
            categoria=CategoriaResponse.model_validate(categoria)
        )

    def _get(self, categoria_id: int, for_update: bool = False) -> Categoria:
        categoria = self.repository.get_by_id(categoria_id, for_update=for_update)
        if not categoria:
            raise NotFoundError("Categoría no encontrada")
        return categoria

    def _verificar_nombre_libre(self, nombre: str, excluir_id: Optional[int] = None) -> None:
        existente = self.repository.get_by_nombre(nombre)
        if existente and existente.id != excluir_id:
            raise ConflictError(f'Ya existe una categoría con el nombre "{existente.nombre}"')
