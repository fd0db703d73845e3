"""
Table registration for ``create_tables()``.

``Base.metadata`` only knows the tables whose ORM modules have been imported.
The kernel engine calls ``import_all_orm_models()`` before ``create_all`` so
custody, operating, payroll and contract tables are always created together.
"""

import importlib

ORM_MODULES = (
    "ledger_modules.contracts.orm",
    "ledger_modules.custody.orm",
    "ledger_modules.operating.orm",
    "ledger_modules.payroll.orm",
)


def import_all_orm_models() -> None:
    for name in ORM_MODULES:
        importlib.import_module(name)
