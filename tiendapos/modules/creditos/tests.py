"""
Tests para el módulo de Créditos

- Recálculo en lectura (interés simple mensual, recargo por cuota)
- Estados pendiente / parcial / pagado / vencido
- Pagos por cuota con margen de redondeo
- Exención de interés
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

from tiendapos.core.exceptions import ValidationError
from tiendapos.modules.creditos.calculator import CreditCalculator
from tiendapos.modules.creditos.schemas import PagoCreditoCreate, PagoCreditoUpdate
from tiendapos.modules.creditos.service import CreditoService
from tiendapos.modules.ventas.schemas import VentaCreate, ItemVenta
from tiendapos.modules.ventas.service import VentaService
from tiendapos.shared.database.models import EstadoCredito, MetodoPago, Producto
from tiendapos.shared.utils.fechas import fecha_local_hoy


@pytest.fixture
def producto_caro(db_session, admin):
    producto = Producto(
        codigo="TV-01",
        nombre="Televisor",
        precio_unitario=Decimal("1000.00"),
        stock_actual=5,
        stock_minimo=0
    )
    db_session.add(producto)
    db_session.commit()
    db_session.refresh(producto)
    return producto


@pytest.fixture
def venta_credito(db_session, vendedor, cliente, producto_caro):
    """total=1000, cuota inicial=200, 5% mensual, 3 cuotas"""
    return VentaService(db_session).crear_venta(
        VentaCreate(
            items=[ItemVenta(id_producto=producto_caro.id, cantidad=1)],
            metodo_pago=MetodoPago.CREDITO,
            id_cliente=cliente.id,
            meses_credito=3,
            cuota_inicial=Decimal("200"),
            tasa_interes=Decimal("5")
        ),
        vendedor.id
    ).venta


def _venta(**kwargs):
    hoy = fecha_local_hoy()
    datos = dict(
        id=1, fecha=hoy, total=Decimal("1000"), cuota_inicial=Decimal("200"),
        tasa_interes=Decimal("5"), meses_credito=3, interes_eximido=False,
        fecha_vencimiento=CreditCalculator.calcular_fecha_vencimiento(hoy, 3)
    )
    datos.update(kwargs)
    return SimpleNamespace(**datos)


class TestCreditCalculator:

    def test_primer_dia_cobra_un_mes(self):
        hoy = fecha_local_hoy()
        calculo = CreditCalculator.recalcular(_venta(), Decimal("0"), hoy)

        assert calculo.meses_transcurridos == 1
        assert calculo.monto_interes == Decimal("40.00")
        assert calculo.total_con_interes == Decimal("1120.00")
        assert calculo.monto_pagado == Decimal("200.00")
        assert calculo.saldo_pendiente == Decimal("920.00")
        assert calculo.estado_credito == EstadoCredito.PARCIAL

    def test_meses_por_bloques_de_30_dias(self):
        hoy = fecha_local_hoy()
        assert CreditCalculator.meses_transcurridos(hoy, hoy + timedelta(days=30)) == 1
        assert CreditCalculator.meses_transcurridos(hoy, hoy + timedelta(days=31)) == 2
        assert CreditCalculator.meses_transcurridos(hoy, hoy + timedelta(days=61)) == 3

    def test_interes_no_decrece_con_el_tiempo(self):
        venta = _venta()
        anterior = Decimal("0")
        for dias in (0, 15, 30, 45, 90, 200):
            calculo = CreditCalculator.recalcular(venta, Decimal("0"), venta.fecha + timedelta(days=dias))
            assert calculo.monto_interes >= anterior
            anterior = calculo.monto_interes

    def test_recalcular_es_idempotente(self):
        venta = _venta()
        hoy = venta.fecha + timedelta(days=40)

        primero = CreditCalculator.recalcular(venta, Decimal("300"), hoy)
        segundo = CreditCalculator.recalcular(venta, Decimal("300"), hoy)

        assert primero == segundo

    def test_sin_cuota_inicial_ni_pagos_es_pendiente(self):
        calculo = CreditCalculator.recalcular(_venta(cuota_inicial=None), Decimal("0"), fecha_local_hoy())

        assert calculo.estado_credito == EstadoCredito.PENDIENTE
        assert calculo.monto_interes == Decimal("50.00")

    def test_vencido_tras_fecha_de_vencimiento(self):
        venta = _venta()
        calculo = CreditCalculator.recalcular(
            venta, Decimal("0"), venta.fecha_vencimiento + timedelta(days=1)
        )
        assert calculo.estado_credito == EstadoCredito.VENCIDO

    def test_pagado_prevalece_sobre_vencido(self):
        venta = _venta(tasa_interes=Decimal("0"))
        calculo = CreditCalculator.recalcular(
            venta, Decimal("800"), venta.fecha_vencimiento + timedelta(days=10)
        )
        assert calculo.estado_credito == EstadoCredito.PAGADO

    def test_interes_eximido(self):
        calculo = CreditCalculator.recalcular(_venta(interes_eximido=True), Decimal("0"), fecha_local_hoy())

        assert calculo.monto_interes == Decimal("0.00")
        assert calculo.total_con_interes == Decimal("1000.00")

    def test_tolerancia_de_pagado(self):
        calculo = CreditCalculator.recalcular(_venta(), Decimal("919.99"), fecha_local_hoy())
        assert calculo.estado_credito == EstadoCredito.PAGADO


class TestPagosCredito:

    def test_pago_total_deja_credito_pagado(self, db_session, vendedor, venta_credito):
        response = CreditoService(db_session).registrar_pago(
            venta_credito.id,
            PagoCreditoCreate(monto_pagado=Decimal("920"), numero_cuota=1),
            vendedor.id
        )

        assert response.calculo.monto_pagado == Decimal("1120.00")
        assert response.calculo.estado_credito == EstadoCredito.PAGADO
        assert response.calculo.saldo_pendiente == Decimal("0.00")

    def test_pago_actualiza_la_proyeccion_guardada(self, db_session, vendedor, venta_credito):
        CreditoService(db_session).registrar_pago(
            venta_credito.id,
            PagoCreditoCreate(monto_pagado=Decimal("100"), numero_cuota=1),
            vendedor.id
        )

        credito = CreditoService(db_session).obtener_credito(venta_credito.id).credito
        assert credito.calculo.monto_pagado == Decimal("300.00")
        assert credito.calculo.estado_credito == EstadoCredito.PARCIAL

    def test_pago_dentro_del_margen_se_ajusta(self, db_session, vendedor, venta_credito):
        response = CreditoService(db_session).registrar_pago(
            venta_credito.id,
            PagoCreditoCreate(monto_pagado=Decimal("920.02"), numero_cuota=1),
            vendedor.id
        )
        assert response.pago.monto_pagado == Decimal("920.00")

    def test_pago_mayor_al_saldo(self, db_session, vendedor, venta_credito):
        with pytest.raises(ValidationError):
            CreditoService(db_session).registrar_pago(
                venta_credito.id,
                PagoCreditoCreate(monto_pagado=Decimal("921"), numero_cuota=1),
                vendedor.id
            )

    def test_cuota_repetida(self, db_session, vendedor, venta_credito):
        service = CreditoService(db_session)
        service.registrar_pago(
            venta_credito.id, PagoCreditoCreate(monto_pagado=Decimal("100"), numero_cuota=1), vendedor.id
        )

        with pytest.raises(ValidationError):
            service.registrar_pago(
                venta_credito.id, PagoCreditoCreate(monto_pagado=Decimal("100"), numero_cuota=1), vendedor.id
            )

    def test_cuota_fuera_de_rango(self, db_session, vendedor, venta_credito):
        with pytest.raises(ValidationError):
            CreditoService(db_session).registrar_pago(
                venta_credito.id, PagoCreditoCreate(monto_pagado=Decimal("10"), numero_cuota=4), vendedor.id
            )

    def test_fecha_futura(self, db_session, vendedor, venta_credito):
        with pytest.raises(ValidationError):
            CreditoService(db_session).registrar_pago(
                venta_credito.id,
                PagoCreditoCreate(
                    monto_pagado=Decimal("10"),
                    numero_cuota=1,
                    fecha_pago=fecha_local_hoy() + timedelta(days=1)
                ),
                vendedor.id
            )

    def test_venta_anulada_no_admite_pagos(self, db_session, admin, vendedor, venta_credito):
        VentaService(db_session).anular_venta(venta_credito.id, admin.id, "Devolución")

        with pytest.raises(ValidationError):
            CreditoService(db_session).registrar_pago(
                venta_credito.id, PagoCreditoCreate(monto_pagado=Decimal("10"), numero_cuota=1), vendedor.id
            )

    def test_venta_de_contado_no_es_credito(self, db_session, vendedor, producto):
        venta = VentaService(db_session).crear_venta(
            VentaCreate(items=[ItemVenta(id_producto=producto.id, cantidad=1)], metodo_pago=MetodoPago.EFECTIVO),
            vendedor.id
        ).venta

        with pytest.raises(ValidationError):
            CreditoService(db_session).obtener_credito(venta.id)

    def test_editar_pago_valida_contra_saldo_sin_ese_pago(self, db_session, vendedor, venta_credito):
        service = CreditoService(db_session)
        pago = service.registrar_pago(
            venta_credito.id, PagoCreditoCreate(monto_pagado=Decimal("500"), numero_cuota=1), vendedor.id
        ).pago

        response = service.actualizar_pago(pago.id, PagoCreditoUpdate(monto_pagado=Decimal("920")))
        assert response.calculo.estado_credito == EstadoCredito.PAGADO

        with pytest.raises(ValidationError):
            service.actualizar_pago(pago.id, PagoCreditoUpdate(monto_pagado=Decimal("950")))

    def test_eliminar_pago_recalcula(self, db_session, vendedor, venta_credito):
        service = CreditoService(db_session)
        pago = service.registrar_pago(
            venta_credito.id, PagoCreditoCreate(monto_pagado=Decimal("920"), numero_cuota=1), vendedor.id
        ).pago

        response = service.eliminar_pago(pago.id)

        assert response.calculo.estado_credito == EstadoCredito.PARCIAL
        assert service.listar_pagos(venta_credito.id).total == 0

    def test_metodo_credito_no_permitido(self):
        with pytest.raises(ValueError):
            PagoCreditoCreate(monto_pagado=Decimal("10"), numero_cuota=1, metodo_pago=MetodoPago.CREDITO)


class TestEximirInteres:

    def test_eximir_y_restablecer(self, db_session, venta_credito):
        service = CreditoService(db_session)

        credito = service.eximir_interes(venta_credito.id, True).credito
        assert credito.calculo.monto_interes == Decimal("0.00")
        assert credito.calculo.total_con_interes == Decimal("1000.00")
        assert credito.calculo.saldo_pendiente == Decimal("800.00")

        credito = service.eximir_interes(venta_credito.id, False).credito
        assert credito.calculo.monto_interes == Decimal("40.00")

    def test_listado_filtra_por_estado_recalculado(self, db_session, vendedor, venta_credito):
        service = CreditoService(db_session)

        assert service.listar_creditos(EstadoCredito.PARCIAL).total == 1
        assert service.listar_creditos(EstadoCredito.PAGADO).total == 0

        vencimiento = fecha_local_hoy() + timedelta(days=120)
        listado = service.listar_creditos(EstadoCredito.VENCIDO, hoy=vencimiento)
        assert listado.total == 1
        assert listado.saldo_pendiente_total > Decimal("920.00")


class TestCreditoEndpoints:

    def test_eximir_requiere_admin(self, client, vendedor_headers, venta_credito):
        response = client.put(
            f"/api/v1/creditos/{venta_credito.id}/eximir-interes",
            json={"interes_eximido": True},
            headers=vendedor_headers
        )
        assert response.status_code == 403

    def test_registrar_pago(self, client, vendedor_headers, venta_credito):
        response = client.post(
            f"/api/v1/creditos/{venta_credito.id}/pagos",
            json={"monto_pagado": "920.00", "numero_cuota": 1},
            headers=vendedor_headers
        )

        assert response.status_code == 201
        assert response.json()["calculo"]["estado_credito"] == "pagado"
