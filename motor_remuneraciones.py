"""
Motor de Cálculo de Liquidaciones de Sueldo - Chile
===================================================

Implementa la lógica previsional chilena de una liquidación mensual:
sueldo proporcional, gratificación Art. 50, tope imponible, AFP, salud,
seguro de cesantía, impuesto único de segunda categoría y asignación
familiar. Todos los montos se expresan en pesos enteros.
"""

import logging
import math
import numbers
from dataclasses import asdict, dataclass, field, fields, replace
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import List, Optional, Tuple

from config import cargar_configuracion, ErrorConfiguracion

logger = logging.getLogger(__name__)

MESES = [
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
]

DIAS_MES_COMERCIAL = 30


# =============================================================================
# 1. ERRORES
# =============================================================================

class ErrorRemuneraciones(Exception):
    """Error base del motor de remuneraciones."""


class ErrorValidacion(ErrorRemuneraciones, ValueError):
    """Datos de entrada inválidos (códigos desconocidos, montos negativos, período fuera de rango)."""


# =============================================================================
# 2. TIPOS
# =============================================================================

class TipoContrato(str, Enum):
    INDEFINIDO = "indefinido"
    PLAZO_FIJO = "plazo_fijo"
    OBRA_FAENA = "obra_faena"


@dataclass(frozen=True)
class Trabajador:
    rut: str
    nombres: str
    apellidos: str
    sueldo_base: int
    tipo_contrato: TipoContrato = TipoContrato.INDEFINIDO
    codigo_afp: str = "HABITAT"
    codigo_salud: str = "FONASA"
    plan_isapre_uf: float = 0.0
    cargas_familiares: int = 0
    gratificacion_legal: bool = False
    cargo: str = ""
    id: str = ""

    def __post_init__(self):
        try:
            tipo = TipoContrato(self.tipo_contrato)
        except ValueError:
            raise ErrorValidacion(f"Tipo de contrato desconocido: {self.tipo_contrato!r}") from None
        object.__setattr__(self, "tipo_contrato", tipo)

    @property
    def nombre_completo(self):
        return f"{self.nombres} {self.apellidos}".strip()


@dataclass(frozen=True)
class Periodo:
    anio: int
    mes: int
    dias_trabajados: int = DIAS_MES_COMERCIAL
    horas_extra: float = 0


@dataclass(frozen=True)
class HaberesAdicionales:
    bonos: int = 0
    comisiones: int = 0
    gratificacion: int = 0
    horas_extra: int = 0
    colacion: int = 0
    movilizacion: int = 0


@dataclass(frozen=True)
class DescuentosAdicionales:
    prestamos: int = 0
    anticipos: int = 0
    apv: int = 0
    otros: int = 0

    @property
    def total(self):
        return self.prestamos + self.anticipos + self.apv + self.otros


@dataclass
class ResultadoLiquidacion:
    trabajador: Trabajador
    periodo: Periodo

    # Haberes imponibles
    sueldo_base: int
    horas_extra: int
    bonos: int
    comisiones: int
    gratificacion: int
    total_imponible: int

    # Haberes no imponibles
    colacion: int
    movilizacion: int
    asignacion_familiar: int
    total_no_imponible: int

    # Descuentos previsionales
    porcentaje_afp: float
    afp_cotizacion: int
    porcentaje_comision_afp: float
    afp_comision: int
    porcentaje_salud: float
    salud_legal: int
    salud_adicional: int
    porcentaje_cesantia: float
    seguro_cesantia: int
    total_previsional: int

    # Impuesto
    base_tributable: int
    impuesto_unico: int
    tramo_impuesto: int

    # Otros descuentos y totales
    otros_descuentos: int
    total_haberes: int
    total_descuentos: int
    liquido: int

    # Aportes del empleador
    sis_empleador: int
    cesantia_empleador: int

    tope_imponible_excedido: bool = False
    tramo_asignacion_familiar: str = ""
    warnings: List[str] = field(default_factory=list)

    @property
    def afp_total(self):
        return self.afp_cotizacion + self.afp_comision

    @property
    def salud_total(self):
        return self.salud_legal + self.salud_adicional

    @property
    def costo_empresa(self):
        return self.total_haberes + self.sis_empleador + self.cesantia_empleador

    def como_dict(self):
        """Diccionario plano con trabajador y período anidados (enums como texto)."""
        datos = asdict(self)
        datos["trabajador"]["tipo_contrato"] = self.trabajador.tipo_contrato.value
        datos["afp_total"] = self.afp_total
        datos["salud_total"] = self.salud_total
        datos["costo_empresa"] = self.costo_empresa
        return datos


# =============================================================================
# 3. PARÁMETROS
# =============================================================================

@dataclass
class ParametrosRemuneraciones:
    """Parámetros legales vigentes. El tope de gratificación se deriva del sueldo mínimo."""

    uf: float
    utm: float
    sueldo_minimo: int
    tope_afp_uf: float
    tope_afc_uf: float
    porcentaje_afp: float
    porcentaje_salud: float
    porcentaje_sis: float
    factor_gratificacion: float
    factor_tope_gratificacion: float
    horas_semanales: float
    recargo_horas_extra: float
    max_porcentaje_descuentos: float
    afps: dict
    instituciones_salud: dict
    seguro_cesantia: dict
    tabla_impuesto: list
    tramos_asignacion: list

    @classmethod
    def desde_config(cls, config=None):
        config = config or cargar_configuracion()
        ind = config["INDICADORES_ECONOMICOS"]

        for codigo, datos in config["AFP_COMISIONES"].items():
            if not _es_finito(datos.get("comision")):
                raise ErrorConfiguracion(f"AFP {codigo} sin comisión definida")
        for codigo, datos in config["INSTITUCIONES_SALUD"].items():
            if not _es_finito(datos.get("porcentaje")):
                raise ErrorConfiguracion(f"Institución de salud {codigo} sin porcentaje definido")

        return cls(
            uf=ind["UF"],
            utm=ind["UTM"],
            sueldo_minimo=ind["IMM"],
            tope_afp_uf=ind["TOPE_AFP"],
            tope_afc_uf=ind["TOPE_AFC"],
            porcentaje_afp=ind["PORCENTAJE_AFP"],
            porcentaje_salud=ind["PORCENTAJE_SALUD_MIN"],
            porcentaje_sis=ind["PORCENTAJE_SIS"],
            factor_gratificacion=ind["FACTOR_GRATIFICACION"],
            factor_tope_gratificacion=ind["FACTOR_TOPE_GRATIFICACION"],
            horas_semanales=ind["HORAS_SEMANALES_LEGALES"],
            recargo_horas_extra=ind["RECARGO_HORAS_EXTRAS"],
            max_porcentaje_descuentos=ind["MAX_PORCENTAJE_DESCUENTOS"],
            afps=config["AFP_COMISIONES"],
            instituciones_salud=config["INSTITUCIONES_SALUD"],
            seguro_cesantia=config["SEGURO_CESANTIA"],
            tabla_impuesto=config["TABLA_IMPUESTO_UNICO"],
            tramos_asignacion=config["TRAMOS_ASIGNACION_FAMILIAR"],
        )

    @property
    def tope_gratificacion(self):
        return calcular_tope_gratificacion(self.sueldo_minimo, self.factor_tope_gratificacion)

    @property
    def tope_imponible(self):
        return redondear(self.tope_afp_uf * self.uf)

    @property
    def tope_cesantia(self):
        return redondear(self.tope_afc_uf * self.uf)


# =============================================================================
# 4. FUNCIONES DE CÁLCULO
# =============================================================================

def _es_finito(valor):
    return isinstance(valor, numbers.Real) and not isinstance(valor, bool) and math.isfinite(valor)


def redondear(valor):
    """Redondeo comercial a pesos enteros (0.5 hacia arriba)."""
    return int(Decimal(str(valor)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calcular_tope_gratificacion(sueldo_minimo, factor=4.75):
    """
    Tope mensual de la gratificación legal (Art. 50 Código del Trabajo).

    Tope: 4.75 ingresos mínimos mensuales dividido por 12 meses.
    """
    if sueldo_minimo < 0:
        raise ErrorValidacion(f"Sueldo mínimo no puede ser negativo: {sueldo_minimo}")
    return redondear((sueldo_minimo * factor) / 12)


def calcular_gratificacion_legal(remuneracion_mensual, sueldo_minimo, factor=0.25, factor_tope=4.75):
    """25% de lo devengado en el mes, con el tope del Art. 50."""
    return min(redondear(remuneracion_mensual * factor), calcular_tope_gratificacion(sueldo_minimo, factor_tope))


def calcular_sueldo_proporcional(sueldo_base, dias_trabajados):
    """Sueldo base proporcional a los días trabajados sobre un mes comercial de 30 días."""
    if sueldo_base < 0:
        raise ErrorValidacion(f"Sueldo base no puede ser negativo: {sueldo_base}")
    if not 0 <= dias_trabajados <= 31:
        raise ErrorValidacion(f"Días trabajados fuera de rango (0-31): {dias_trabajados}")
    if dias_trabajados >= DIAS_MES_COMERCIAL:
        return sueldo_base
    return redondear(sueldo_base / DIAS_MES_COMERCIAL * dias_trabajados)


def calcular_valor_hora_extra(sueldo_base, horas_semanales=44, recargo=0.50):
    """Valor de una hora extraordinaria: (sueldo / 30 * 28) / (4 * jornada) con recargo."""
    if horas_semanales <= 0:
        raise ErrorValidacion(f"Jornada semanal inválida: {horas_semanales}")
    valor_hora = (sueldo_base / DIAS_MES_COMERCIAL * 28) / (4 * horas_semanales)
    return valor_hora * (1 + recargo)


def calcular_impuesto_unico(base_tributable, utm, tabla) -> Tuple[int, int]:
    """
    Impuesto único de segunda categoría según la tabla mensual en UTM.

    Returns:
        (monto, tramo) con tramo numerado desde 1.
    """
    if base_tributable <= 0:
        return 0, 1
    en_utm = base_tributable / utm
    for tramo, (desde, hasta, factor, rebaja) in enumerate(tabla, start=1):
        if desde <= en_utm and (hasta is None or en_utm < hasta):
            monto = base_tributable * factor - rebaja * utm
            return max(0, redondear(monto)), tramo
    # la tabla termina en un tramo abierto; solo se llega aquí con una tabla mal configurada
    raise ErrorConfiguracion(f"Tabla de impuesto no cubre {en_utm:.2f} UTM")


def calcular_asignacion_familiar(cargas, sueldo_base, tramos) -> Tuple[int, str]:
    """Monto total de asignación familiar y tramo según la renta del trabajador."""
    if cargas < 0:
        raise ErrorValidacion(f"Cargas familiares no pueden ser negativas: {cargas}")
    for tramo, renta_maxima, monto in tramos:
        if renta_maxima is None or sueldo_base <= renta_maxima:
            return cargas * monto, tramo
    return 0, ""


def calcular_seguro_cesantia(total_imponible, tipo_contrato, tope_cesantia, tasas) -> Tuple[float, int]:
    """Porcentaje y monto de seguro de cesantía de cargo del trabajador."""
    tipo = TipoContrato(tipo_contrato).value
    porcentaje = tasas[tipo]["trabajador"]
    return porcentaje, redondear(min(total_imponible, tope_cesantia) * porcentaje)


def formatear_pesos(monto):
    """Formato moneda chilena: $1.234.567"""
    texto = f"${abs(monto):,.0f}".replace(",", ".")
    return f"-{texto}" if monto < 0 else texto


def formatear_periodo(anio, mes):
    if not 1 <= mes <= 12:
        raise ErrorValidacion(f"Mes inválido: {mes}")
    return f"{MESES[mes - 1]} {anio}"


# =============================================================================
# 5. CALCULADORA
# =============================================================================

class CalculadoraRemuneraciones:
    """Calcula liquidaciones completas con los parámetros legales vigentes."""

    def __init__(self, parametros: Optional[ParametrosRemuneraciones] = None):
        self.parametros = parametros or ParametrosRemuneraciones.desde_config()

    def calcular_liquidacion(
        self,
        trabajador: Trabajador,
        periodo: Periodo,
        haberes: Optional[HaberesAdicionales] = None,
        descuentos: Optional[DescuentosAdicionales] = None,
    ) -> ResultadoLiquidacion:
        haberes = haberes or HaberesAdicionales()
        descuentos = descuentos or DescuentosAdicionales()
        p = self.parametros
        warnings = []

        afp, salud, tipo_contrato = self._validar(trabajador, periodo, haberes, descuentos)

        # 1. Haberes imponibles
        sueldo_base = calcular_sueldo_proporcional(trabajador.sueldo_base, periodo.dias_trabajados)
        if periodo.dias_trabajados < DIAS_MES_COMERCIAL:
            warnings.append(f"Período parcial: {periodo.dias_trabajados} días trabajados")

        monto_horas_extra = haberes.horas_extra
        if not monto_horas_extra and periodo.horas_extra:
            valor_hora = calcular_valor_hora_extra(trabajador.sueldo_base, p.horas_semanales, p.recargo_horas_extra)
            monto_horas_extra = redondear(valor_hora * periodo.horas_extra)

        gratificacion = haberes.gratificacion
        if not gratificacion and trabajador.gratificacion_legal:
            devengado = sueldo_base + monto_horas_extra + haberes.bonos + haberes.comisiones
            gratificacion = calcular_gratificacion_legal(
                devengado, p.sueldo_minimo, p.factor_gratificacion, p.factor_tope_gratificacion
            )

        total_imponible = sueldo_base + monto_horas_extra + haberes.bonos + haberes.comisiones + gratificacion

        # 2. Tope imponible
        tope = p.tope_imponible
        tope_excedido = total_imponible > tope
        base_previsional = min(total_imponible, tope)
        if tope_excedido:
            warnings.append(f"Renta imponible excede tope de {p.tope_afp_uf} UF")
            logger.warning("Tope imponible excedido para %s: %s > %s", trabajador.rut, total_imponible, tope)

        # 3. Haberes no imponibles
        asignacion, tramo_asignacion = calcular_asignacion_familiar(
            trabajador.cargas_familiares, trabajador.sueldo_base, p.tramos_asignacion
        )
        if asignacion:
            warnings.append(f"Asignación familiar: tramo {tramo_asignacion}")
        total_no_imponible = haberes.colacion + haberes.movilizacion + asignacion

        # 4. Descuentos previsionales
        afp_cotizacion = redondear(base_previsional * p.porcentaje_afp)
        porcentaje_comision = afp["comision"]
        afp_comision = redondear(base_previsional * porcentaje_comision / 100)

        porcentaje_salud = salud["porcentaje"]
        salud_legal = redondear(base_previsional * porcentaje_salud / 100)
        salud_adicional = 0
        if trabajador.plan_isapre_uf:
            valor_plan = redondear(trabajador.plan_isapre_uf * p.uf)
            if valor_plan > salud_legal:
                salud_adicional = valor_plan - salud_legal
                warnings.append(
                    f"Plan Isapre ({trabajador.plan_isapre_uf} UF) excede el 7% legal. "
                    f"La diferencia ({formatear_pesos(salud_adicional)}) es de cargo del trabajador."
                )

        porcentaje_cesantia, seguro_cesantia = calcular_seguro_cesantia(
            total_imponible, tipo_contrato, p.tope_cesantia, p.seguro_cesantia
        )
        if tipo_contrato != TipoContrato.INDEFINIDO:
            warnings.append(f"Contrato {tipo_contrato.value}: sin seguro de cesantía de cargo del trabajador")

        total_previsional = afp_cotizacion + afp_comision + salud_legal + salud_adicional + seguro_cesantia

        # 5. Impuesto único (la cotización adicional de Isapre no rebaja la base)
        base_tributable = max(0, total_imponible - afp_cotizacion - afp_comision - salud_legal - seguro_cesantia)
        impuesto, tramo_impuesto = calcular_impuesto_unico(base_tributable, p.utm, p.tabla_impuesto)
        if impuesto:
            warnings.append(f"Impuesto segunda categoría: tramo {tramo_impuesto}")

        # 6. Totales
        otros_descuentos = descuentos.total
        total_haberes = total_imponible + total_no_imponible
        total_descuentos = total_previsional + impuesto + otros_descuentos
        liquido = total_haberes - total_descuentos

        if liquido < 0:
            raise ErrorValidacion(
                f"Descuentos voluntarios ({formatear_pesos(salud_adicional + otros_descuentos)}) "
                f"exceden el líquido disponible para {trabajador.rut}"
            )

        if total_haberes and total_descuentos / total_haberes > p.max_porcentaje_descuentos:
            warnings.append(
                f"Descuentos ({total_descuentos / total_haberes * 100:.1f}%) exceden límite legal "
                f"del {p.max_porcentaje_descuentos * 100:.0f}%"
            )

        # 7. Aportes del empleador
        sis_empleador = redondear(base_previsional * p.porcentaje_sis)
        cesantia_empleador = redondear(
            min(total_imponible, p.tope_cesantia) * p.seguro_cesantia[tipo_contrato.value]["empleador"]
        )

        logger.debug(
            "Liquidación %s %s/%s: imponible=%s descuentos=%s liquido=%s",
            trabajador.rut, periodo.mes, periodo.anio, total_imponible, total_descuentos, liquido,
        )

        return ResultadoLiquidacion(
            trabajador=trabajador,
            periodo=periodo,
            sueldo_base=sueldo_base,
            horas_extra=monto_horas_extra,
            bonos=haberes.bonos,
            comisiones=haberes.comisiones,
            gratificacion=gratificacion,
            total_imponible=total_imponible,
            colacion=haberes.colacion,
            movilizacion=haberes.movilizacion,
            asignacion_familiar=asignacion,
            total_no_imponible=total_no_imponible,
            porcentaje_afp=p.porcentaje_afp * 100,
            afp_cotizacion=afp_cotizacion,
            porcentaje_comision_afp=porcentaje_comision,
            afp_comision=afp_comision,
            porcentaje_salud=porcentaje_salud,
            salud_legal=salud_legal,
            salud_adicional=salud_adicional,
            porcentaje_cesantia=porcentaje_cesantia * 100,
            seguro_cesantia=seguro_cesantia,
            total_previsional=total_previsional,
            base_tributable=base_tributable,
            impuesto_unico=impuesto,
            tramo_impuesto=tramo_impuesto,
            otros_descuentos=otros_descuentos,
            total_haberes=total_haberes,
            total_descuentos=total_descuentos,
            liquido=liquido,
            sis_empleador=sis_empleador,
            cesantia_empleador=cesantia_empleador,
            tope_imponible_excedido=tope_excedido,
            tramo_asignacion_familiar=tramo_asignacion if asignacion else "",
            warnings=warnings,
        )

    def calcular_bruto_desde_liquido(
        self,
        liquido_objetivo: int,
        trabajador: Trabajador,
        periodo: Optional[Periodo] = None,
        haberes: Optional[HaberesAdicionales] = None,
        descuentos: Optional[DescuentosAdicionales] = None,
    ) -> ResultadoLiquidacion:
        """
        Ingeniería inversa: busca por bisección un sueldo base cuyo líquido alcanza el objetivo.

        El resultado queda a un peso del límite encontrado (un peso menos no alcanza),
        pero no es necesariamente el mínimo global: el líquido no es monótono en el
        sueldo base porque la asignación familiar baja de tramo en los cortes de renta.

        Se mantienen AFP, salud, contrato y haberes del trabajador; solo varía el sueldo base.
        """
        if liquido_objetivo < 0:
            raise ErrorValidacion(f"Líquido objetivo no puede ser negativo: {liquido_objetivo}")
        periodo = periodo or Periodo(anio=2025, mes=1)
        self._validar(trabajador, periodo, haberes or HaberesAdicionales(), descuentos or DescuentosAdicionales())

        def liquido_para(base):
            try:
                resultado = self.calcular_liquidacion(replace(trabajador, sueldo_base=base), periodo, haberes, descuentos)
            except ErrorValidacion:
                # descuentos voluntarios mayores al líquido con este sueldo base
                return -1
            return resultado.liquido

        if liquido_para(0) >= liquido_objetivo:
            return self.calcular_liquidacion(replace(trabajador, sueldo_base=0), periodo, haberes, descuentos)

        minimo, maximo = 0, max(liquido_objetivo, 1) * 2
        for _ in range(32):
            if liquido_para(maximo) >= liquido_objetivo:
                break
            minimo, maximo = maximo, maximo * 2
        else:
            raise ErrorValidacion(f"Líquido objetivo inalcanzable: {liquido_objetivo}")

        # búsqueda binaria sobre pesos enteros
        while maximo - minimo > 1:
            medio = (minimo + maximo) // 2
            if liquido_para(medio) >= liquido_objetivo:
                maximo = medio
            else:
                minimo = medio

        return self.calcular_liquidacion(replace(trabajador, sueldo_base=maximo), periodo, haberes, descuentos)

    def _validar(self, trabajador, periodo, haberes, descuentos):
        p = self.parametros

        codigo_afp = str(trabajador.codigo_afp or "").upper()
        if codigo_afp not in p.afps:
            raise ErrorValidacion(f"AFP desconocida: {trabajador.codigo_afp!r}")

        codigo_salud = str(trabajador.codigo_salud or "").upper()
        if codigo_salud not in p.instituciones_salud:
            raise ErrorValidacion(f"Institución de salud desconocida: {trabajador.codigo_salud!r}")
        salud = p.instituciones_salud[codigo_salud]

        tipo_contrato = TipoContrato(trabajador.tipo_contrato)

        montos = [
            ("sueldo_base", trabajador.sueldo_base),
            ("plan_isapre_uf", trabajador.plan_isapre_uf),
            ("cargas_familiares", trabajador.cargas_familiares),
            ("horas_extra", periodo.horas_extra),
        ]
        for objeto in (haberes, descuentos):
            montos.extend((campo.name, getattr(objeto, campo.name)) for campo in fields(objeto))
        for nombre, valor in montos:
            if not _es_finito(valor):
                raise ErrorValidacion(f"{nombre} debe ser un número finito: {valor!r}")
            if valor < 0:
                raise ErrorValidacion(f"{nombre} no puede ser negativo: {valor}")

        if trabajador.plan_isapre_uf and not salud.get("isapre", False):
            raise ErrorValidacion(f"{codigo_salud} no admite plan pactado en UF")

        for nombre, valor in (("anio", periodo.anio), ("mes", periodo.mes), ("dias_trabajados", periodo.dias_trabajados)):
            if not _es_finito(valor):
                raise ErrorValidacion(f"{nombre} debe ser un número finito: {valor!r}")
        if not 1 <= periodo.mes <= 12:
            raise ErrorValidacion(f"Mes debe estar entre 1 y 12: {periodo.mes}")
        if periodo.anio < 1:
            raise ErrorValidacion(f"Año inválido: {periodo.anio}")
        if not 0 <= periodo.dias_trabajados <= 31:
            raise ErrorValidacion(f"Días trabajados fuera de rango (0-31): {periodo.dias_trabajados}")

        return p.afps[codigo_afp], salud, tipo_contrato
