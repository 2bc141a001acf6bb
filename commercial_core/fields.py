from __future__ import annotations

import logging
import numbers
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)

Record = Mapping[str, Any]
ColumnMapping = Mapping[str, str]

EXCEL_EPOCH = "1899-12-30"
EXCEL_SERIAL_MAX = 2958465  # 9999-12-31

UNSPECIFIED = "Unspecified"

_NUMERIC_NOISE = re.compile(r"[^\d.,\-]")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_DMY_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})")


class Field(str, Enum):
    UNIT_PRICE = "unit_price"
    QUANTITY = "quantity"
    GROSS_VALUE = "value"
    TAX_SUBSTITUTION = "tax_substitution"
    OUTPUT_TAX_RATE = "output_tax_rate"
    NET_COST = "net_cost"
    COMMISSION_RATE = "commission_rate"
    OTHER_EXPENSES = "other_expenses"
    REBATE = "rebate"
    DATE = "date"
    CUSTOMER_ID = "customer_id"
    CUSTOMER_NAME = "customer_name"
    SALESPERSON = "salesperson"
    REGION = "region"
    MANAGER = "manager"
    STATE = "state"
    PRODUCT = "product"
    CATEGORY = "category"
    SUPPLIER = "supplier"


FieldName = Union[Field, str]

# Ordered: the first non-blank hit wins.
FIELD_ALIASES: Dict[Field, Tuple[str, ...]] = {
    Field.UNIT_PRICE: (
        "unit_price", "UNIT_PRICE", "unitPrice", "price", "PRICE", "Price",
        "preco_venda", "PRECO_VENDA", "precoVenda", "valor_unitario", "VALOR_UNITARIO",
        "valorUnitario", "preco", "PRECO", "Preco",
    ),
    Field.QUANTITY: (
        "quantity", "QUANTITY", "Quantity", "qty", "QTY", "Qty",
        "quantidade", "QUANTIDADE", "Quantidade", "qtd", "QTD", "Qtd", "qtde", "QTDE",
    ),
    Field.GROSS_VALUE: (
        "value", "VALUE", "Value", "total", "TOTAL", "Total", "amount", "AMOUNT",
        "valor", "VALOR", "Valor", "vlr_total", "VLR_TOTAL",
    ),
    Field.TAX_SUBSTITUTION: (
        "tax_substitution", "TAX_SUBSTITUTION", "taxSubstitution",
        "valor_st", "VALOR_ST", "valorST", "valorSt", "st", "ST", "icms_st", "ICMS_ST",
        "substituicao_tributaria",
    ),
    Field.OUTPUT_TAX_RATE: (
        "output_tax_rate", "OUTPUT_TAX_RATE", "outputTaxRate", "tax_rate", "TAX_RATE",
        "aliquota_saida", "ALIQUOTA_SAIDA", "aliquotaSaida", "imposto_saida", "IMPOSTO_SAIDA",
        "impostoSaida", "aliquota", "ALIQUOTA", "tax", "TAX",
    ),
    Field.NET_COST: (
        "net_cost", "NET_COST", "netCost", "unit_cost", "UNIT_COST", "cost", "COST", "Cost",
        "cmv_liquido", "CMV_LIQUIDO", "cmvLiquido", "custo", "CUSTO", "Custo",
        "custo_unitario", "CUSTO_UNITARIO", "valor_custo", "VALOR_CUSTO",
    ),
    Field.COMMISSION_RATE: (
        "commission_rate", "COMMISSION_RATE", "commissionRate", "commission_pct",
        "percentual_comissao", "PERCENTUAL_COMISSAO", "percentualComissao",
        "comissao_percentual", "COMISSAO_PERCENTUAL", "comissaoPercentual",
        "perc_comissao", "PERC_COMISSAO",
    ),
    Field.OTHER_EXPENSES: (
        "other_expenses", "OTHER_EXPENSES", "otherExpenses", "expenses", "freight",
        "outras_despesas", "OUTRAS_DESPESAS", "despesa", "valor_despesa", "frete",
        "marketing", "despesas_adicionais",
    ),
    Field.REBATE: (
        "rebate", "REBATE", "Rebate", "bonus_credit",
        "bonificacao", "BONIFICACAO", "credito_bonificacao", "recomposicao_margem",
        "credito", "desconto_adicional",
    ),
    Field.DATE: (
        "date", "DATE", "Date", "sale_date", "SALE_DATE", "invoice_date", "INVOICE_DATE",
        "data", "DATA", "Data", "data_venda", "DATA_VENDA", "dt_venda", "DT_VENDA",
    ),
    Field.CUSTOMER_ID: (
        "customer_id", "CUSTOMER_ID", "customerId", "tax_id", "TAX_ID",
        "cnpj", "CNPJ", "Cnpj", "cnpj_cliente", "CNPJ_CLIENTE", "documento", "DOCUMENTO",
        "cpf_cnpj", "CPF_CNPJ",
    ),
    Field.CUSTOMER_NAME: (
        "customer_name", "CUSTOMER_NAME", "customerName", "customer", "CUSTOMER", "Customer",
        "cliente", "CLIENTE", "Cliente", "nome_cliente", "NOME_CLIENTE",
        "razao_social", "RAZAO_SOCIAL",
    ),
    Field.SALESPERSON: (
        "salesperson", "SALESPERSON", "Salesperson", "seller", "SELLER", "sales_rep",
        "vendedor", "VENDEDOR", "Vendedor", "nome_vendedor", "NOME_VENDEDOR",
    ),
    Field.REGION: (
        "region", "REGION", "Region",
        "regiao", "REGIAO", "Regiao", "região", "REGIÃO", "Região",
    ),
    Field.MANAGER: (
        "manager", "MANAGER", "Manager", "supervisor", "SUPERVISOR",
        "gerente", "GERENTE", "Gerente", "nome_gerente", "NOME_GERENTE",
    ),
    Field.STATE: (
        "state", "STATE", "State", "uf", "UF", "Uf", "estado", "ESTADO", "Estado",
    ),
    Field.PRODUCT: (
        "product", "PRODUCT", "Product", "description", "DESCRIPTION",
        "produto", "PRODUTO", "Produto", "descricao", "DESCRICAO", "desc", "DESC",
    ),
    Field.CATEGORY: (
        "category", "CATEGORY", "Category", "categoria", "CATEGORIA", "Categoria",
    ),
    Field.SUPPLIER: (
        "supplier", "SUPPLIER", "Supplier", "vendor", "VENDOR",
        "fornecedor", "FORNECEDOR", "Fornecedor",
    ),
}


def field_name(field: FieldName) -> str:
    return field.value if isinstance(field, Field) else str(field)


def _aliases_for(name: str) -> Tuple[str, ...]:
    try:
        return FIELD_ALIASES[Field(name)]
    except ValueError:
        return (name, name.upper(), name.lower())


def is_blank(value: object) -> bool:
    """True for None, NaN/NA/NaT and empty or whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if pd.api.types.is_scalar(value):
        try:
            return bool(pd.isna(value))
        except (TypeError, ValueError):
            return False
    return False


def normalize_mapping(raw: Optional[Mapping[Any, Any]]) -> Dict[str, str]:
    if not raw:
        return {}
    out: Dict[str, str] = {}
    for key, column in raw.items():
        if key is None or is_blank(column):
            continue
        out[field_name(key)] = str(column)
    return out


def as_records(data: object) -> List[Record]:
    if data is None:
        return []
    if isinstance(data, pd.DataFrame):
        if data.empty:
            return []
        return data.to_dict(orient="records")
    if isinstance(data, Mapping):
        return [data]
    return list(data)  # type: ignore[arg-type]


def resolve(record: Record, field: FieldName, mapping: Optional[ColumnMapping] = None) -> Any:
    """Return the first non-blank raw value for a logical field, or None.

    The caller-declared column (``mapping[field]``) is tried first, then the
    ordered alias table for the field.
    """
    if not isinstance(record, Mapping):
        return None
    name = field_name(field)
    if mapping:
        mapped = mapping.get(name)
        if mapped is None and isinstance(field, Field):
            mapped = mapping.get(field)  # type: ignore[call-overload]
        if mapped:
            value = record.get(mapped)
            if not is_blank(value):
                return value
    for key in _aliases_for(name):
        value = record.get(key)
        if not is_blank(value):
            return value
    return None


# ---------------- Numbers ----------------
def _normalize_decimal(cleaned: str) -> str:
    comma = cleaned.rfind(",")
    dot = cleaned.rfind(".")
    if comma >= 0 and dot >= 0:
        if comma > dot:
            # 1.234,56
            return cleaned.replace(".", "").replace(",", ".")
        # 1,234.56
        return cleaned.replace(",", "")
    if comma >= 0:
        if cleaned.count(",") > 1:
            return cleaned.replace(",", "")
        return cleaned.replace(",", ".")
    if cleaned.count(".") > 1:
        return cleaned.replace(".", "")
    return cleaned


def parse_number(raw: object, default: float = 0.0) -> float:
    if is_blank(raw) or isinstance(raw, bool):
        return default
    if isinstance(raw, numbers.Number):
        try:
            out = float(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return default
        return out if np.isfinite(out) else default
    cleaned = _NUMERIC_NOISE.sub("", str(raw))
    if not cleaned:
        return default
    try:
        out = float(_normalize_decimal(cleaned))
    except ValueError:
        return default
    return out if np.isfinite(out) else default


def as_number(
    record: Record,
    field: FieldName,
    mapping: Optional[ColumnMapping] = None,
    default: float = 0.0,
) -> float:
    return parse_number(resolve(record, field, mapping), default)


# ---------------- Text ----------------
def parse_text(raw: object, default: str = "") -> str:
    if is_blank(raw):
        return default
    text = str(raw).strip()
    return text if text else default


def as_text(
    record: Record,
    field: FieldName,
    mapping: Optional[ColumnMapping] = None,
    default: str = "",
) -> str:
    return parse_text(resolve(record, field, mapping), default)


# ---------------- Dates ----------------
def _timestamp_to_date(ts: object) -> Optional[date]:
    if ts is None or pd.isna(ts):
        return None
    return pd.Timestamp(ts).date()


def parse_date(raw: object) -> Optional[date]:
    """Coerce a raw cell into a calendar date; None when it cannot be read.

    Numbers in the spreadsheet serial range are days since 1899-12-30; other
    numbers are Unix epoch milliseconds.
    """
    if is_blank(raw) or isinstance(raw, bool):
        return None
    try:
        if isinstance(raw, datetime):
            return raw.date()
        if isinstance(raw, date):
            return raw
        if isinstance(raw, np.datetime64):
            return _timestamp_to_date(pd.Timestamp(raw))
        if isinstance(raw, numbers.Number):
            value = float(raw)  # type: ignore[arg-type]
            if 1 <= value <= EXCEL_SERIAL_MAX:
                return _timestamp_to_date(pd.to_datetime(value, unit="D", origin=EXCEL_EPOCH, errors="coerce"))
            return _timestamp_to_date(pd.to_datetime(value, unit="ms", errors="coerce"))
        text = str(raw).strip()
        if _ISO_DATE.match(text):
            return _timestamp_to_date(pd.to_datetime(text[:10], format="%Y-%m-%d", errors="coerce"))
        match = _DMY_DATE.match(text)
        if match:
            day, month, year = (int(g) for g in match.groups())
            return date(year, month, day)
        return _timestamp_to_date(pd.to_datetime(text, errors="coerce", dayfirst=True))
    except (ValueError, TypeError, OverflowError):
        logger.debug("unparseable date %r", raw)
        return None


def as_date(
    record: Record,
    mapping: Optional[ColumnMapping] = None,
    field: FieldName = Field.DATE,
) -> Optional[date]:
    return parse_date(resolve(record, field, mapping))


# ---------------- Customer identity ----------------
def customer_key(record: Record, mapping: Optional[ColumnMapping] = None) -> Optional[str]:
    """Stable customer identity: tax id, else customer name, else None."""
    key = as_text(record, Field.CUSTOMER_ID, mapping)
    if key:
        return key
    name = as_text(record, Field.CUSTOMER_NAME, mapping)
    return name or None


def customer_label(record: Record, mapping: Optional[ColumnMapping] = None, default: str = "") -> str:
    name = as_text(record, Field.CUSTOMER_NAME, mapping)
    if name:
        return name
    return as_text(record, Field.CUSTOMER_ID, mapping, default)


def latest_date(records: Iterable[Record], mapping: Optional[ColumnMapping] = None) -> Optional[date]:
    latest: Optional[date] = None
    for record in records:
        day = as_date(record, mapping)
        if day is not None and (latest is None or day > latest):
            latest = day
    return latest
