"""Sample documents shared by the tests."""

import copy
from typing import Any

from src.core.types import DocumentPayload

CODIGO = "2E5A1C6B-3F4D-4E8A-9B0C-1D2E3F4A5B6C"
ISSUER_NIT = "06142901861023"
RECEIVER_NIT = "06140101001010"

_INVOICE: DocumentPayload = {
    "identificacion": {
        "version": 1,
        "ambiente": "00",
        "tipoDte": "01",
        "numeroControl": "DTE-01-ABCD1234-000000000000001",
        "codigoGeneracion": CODIGO,
        "tipoModelo": 1,
        "tipoOperacion": 1,
        "tipoContingencia": None,
        "motivoContin": None,
        "fecEmi": "2025-03-14",
        "horEmi": "10:15:00",
        "tipoMoneda": "USD",
    },
    "emisor": {
        "nit": ISSUER_NIT,
        "nrc": "1234567",
        "nombre": "Comercial Ejemplo S.A. de C.V.",
        "codActividad": "46900",
        "descActividad": "Venta al por mayor",
        "direccion": {
            "departamento": "06",
            "municipio": "14",
            "complemento": "Colonia Escalón",
        },
    },
    "receptor": {"nit": RECEIVER_NIT, "nombre": "Cliente Frecuente"},
    "cuerpoDocumento": [
        {
            "numItem": 1,
            "tipoItem": 1,
            "cantidad": 2,
            "descripcion": "Caja de tornillos",
            "precioUni": 5.0,
            "montoDescu": 0,
            "ventaNoSuj": 0,
            "ventaExenta": 0,
            "ventaGravada": 10.0,
        }
    ],
    "resumen": {
        "totalNoSuj": 0,
        "totalExenta": 0,
        "totalGravada": 10.0,
        "subTotalVentas": 10.0,
        "totalDescu": 0,
        "tributos": [{"codigo": "20", "descripcion": "IVA 13%", "valor": 1.3}],
        "ivaRete1": 0,
        "reteRenta": 0,
        "montoTotalOperacion": 11.3,
        "totalPagar": 11.3,
        "condicionOperacion": 1,
        "totalLetras": "ONCE 30/100 DÓLARES",
    },
}


def make_dte(**identificacion: Any) -> DocumentPayload:
    """A valid invoice; keyword arguments override ``identificacion`` fields."""
    document = copy.deepcopy(_INVOICE)
    document["identificacion"].update(identificacion)
    return document


def make_received_ccf(
    gravada: float = 100.0, iva: float = 13.0, fec_emi: str = "2025-03-02"
) -> DocumentPayload:
    """A tax credit voucher issued to us by a supplier."""
    document = make_dte(tipoDte="03", fecEmi=fec_emi)
    document["resumen"].update(
        totalGravada=gravada,
        subTotalVentas=gravada,
        tributos=[{"codigo": "20", "descripcion": "IVA 13%", "valor": iva}],
    )
    return document


def make_withholding_receipt(rete_iva: float = 1.0, rete_renta: float = 10.0) -> DocumentPayload:
    document = make_dte(tipoDte="07", fecEmi="2025-03-20")
    document["resumen"] = {
        "totalSujetoRetencion": 100.0,
        "totalIVAretenido": rete_iva,
        "reteRenta": rete_renta,
    }
    return document
