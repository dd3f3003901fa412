from __future__ import annotations

from typing import Any, Dict, List

import pytest

from otquote.catalog import build_catalog
from otquote.models import Catalog


@pytest.fixture
def raw_rows() -> List[Dict[str, Any]]:
    return [
        {
            "iss": "T1",
            "subject_ticket": "Tablero principal",
            "sector": "Electricidad",
            "fecha_ejecucion": "2024-03-01",
            "ot": "OT1",
            "subject_ot": "Cambio de térmica",
            "duracion": "2:30",
            "costo_mo_total": 100,
            "nro_tec": 2,
        },
        {
            "iss": "T1",
            "subject_ticket": "Tablero principal",
            "sector": "Electricidad",
            "fecha_ejecucion": "2024-03-02",
            "ot": "OT2",
            "subject_ot": "Cableado",
            "duracion": "1:00",
            "costo_mo_total": 300,
            "nro_tec": 1,
        },
        {
            "iss": "T2",
            "subject_ticket": "Pérdida de agua",
            "sector": "Sanitarios",
            "fecha_ejecucion": "2024-04-10",
            "ot": "OT3",
            "subject_ot": "Reparación de cañería",
            "duracion": "4",
            "costo_mo_total": 200,
            "nro_tec": 3,
        },
        {
            "iss": "T3",
            "subject_ticket": "Relevamiento",
            "sector": "Electricidad",
            "fecha_ejecucion": "2024-01-15",
        },
    ]


@pytest.fixture
def catalog(raw_rows) -> Catalog:
    return build_catalog(raw_rows)
