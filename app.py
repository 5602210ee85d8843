import logging
from datetime import date

import pandas as pd
import streamlit as st

from config import ErrorConfiguracion
from libro_remuneraciones import (
    exportar_libro_excel,
    generar_archivo_previred,
    generar_centralizacion,
    generar_libro,
    generar_liquidacion_pdf,
    generar_plantilla,
    procesar_planilla,
)
from motor_remuneraciones import (
    CalculadoraRemuneraciones,
    DescuentosAdicionales,
    ErrorValidacion,
    HaberesAdicionales,
    MESES,
    ParametrosRemuneraciones,
    Periodo,
    TipoContrato,
    Trabajador,
    formatear_periodo,
    formatear_pesos,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# =============================================================================
# 1. CONFIGURACIÓN Y ESTILOS
# =============================================================================
st.set_page_config(page_title="Remuneraciones Chile", layout="wide", page_icon="💰")

def cargar_estilos():
    st.markdown("""
    <style>
        .block-container {padding-top: 1rem;}
        h1, h2, h3 {color: #003366 !important;}
        .stButton>button {
            background-color: #003366; color: white; border-radius: 4px; height: 3em; width: 100%; font-weight: bold;
        }
        .stButton>button:hover {background-color: #004080;}

        .paper-sheet {
            background: white; border: 1px solid #ccc; padding: 25px;
            font-family: 'Courier New', monospace; box-shadow: 0 4px 6px rgba(0,0,0,0.1);
            color: #333;
        }
        .paper-header {text-align: center; border-bottom: 2px solid #333; margin-bottom: 15px; font-weight: bold;}
        .paper-row {display: flex; justify-content: space-between; border-bottom: 1px dotted #ddd; padding: 4px 0;}
    </style>
    """, unsafe_allow_html=True)

cargar_estilos()

@st.cache_resource
def obtener_calculadora():
    return CalculadoraRemuneraciones(ParametrosRemuneraciones.desde_config())

try:
    calculadora = obtener_calculadora()
except ErrorConfiguracion as e:
    st.error(f"⚠️ Error en la configuración de remuneraciones: {e}")
    st.stop()

P = calculadora.parametros

def fila_papel(etiqueta, monto, descuento=False):
    color = ' style="color:#b30000"' if descuento else ""
    signo = "-" if descuento else ""
    return f'<div class="paper-row"><span>{etiqueta}</span><span{color}>{signo}{formatear_pesos(monto)}</span></div>'

def mostrar_liquidacion(res):
    for glosa in res.warnings:
        st.warning(glosa)
    filas_haberes = "".join(fila_papel(e, m) for e, m in [
        ("Sueldo Base:", res.sueldo_base), ("Horas Extra:", res.horas_extra), ("Bonos y Comisiones:", res.bonos + res.comisiones),
        ("Gratificación Legal:", res.gratificacion), ("Colación y Movilización:", res.colacion + res.movilizacion),
        ("Asignación Familiar:", res.asignacion_familiar),
    ] if m)
    filas_descuentos = "".join(fila_papel(e, m, True) for e, m in [
        (f"AFP ({res.porcentaje_afp + res.porcentaje_comision_afp:.2f}%):", res.afp_total),
        ("Salud (7%):", res.salud_legal), ("Adicional Isapre:", res.salud_adicional),
        ("Seguro Cesantía:", res.seguro_cesantia), ("Impuesto Único:", res.impuesto_unico),
        ("Otros Descuentos:", res.otros_descuentos),
    ] if m)
    st.markdown(f"""
    <div class="paper-sheet">
        <div class="paper-header">LIQUIDACIÓN {formatear_periodo(res.periodo.anio, res.periodo.mes).upper()}</div>
        {filas_haberes}
        <hr>
        {filas_descuentos}
        <br>
        <div style="font-size: 1.2em; font-weight: bold; text-align: right; color: #003366;">
            LÍQUIDO A PAGAR: {formatear_pesos(res.liquido)}
        </div>
    </div>
    """, unsafe_allow_html=True)

# =============================================================================
# 2. INTERFAZ
# =============================================================================

with st.sidebar:
    st.header("⚙️ Configuración Global")
    if 'empresa' not in st.session_state: st.session_state.empresa = {}
    st.session_state.empresa['rut'] = st.text_input("RUT Empresa", "76.xxx.xxx-x")
    st.session_state.empresa['nombre'] = st.text_input("Razón Social", "Mi Empresa SpA")

    hoy = date.today()
    anio = st.number_input("Año", min_value=2000, max_value=2100, value=hoy.year)
    mes = st.selectbox("Mes", range(1, 13), index=hoy.month - 1, format_func=lambda m: MESES[m - 1])

    st.divider()
    st.markdown("**Indicadores Vigentes:**")
    st.metric("UF", f"${P.uf:,.2f}")
    st.metric("UTM", f"${P.utm:,.0f}")
    st.metric("Sueldo Mínimo", formatear_pesos(P.sueldo_minimo))
    st.metric("Tope Gratificación", formatear_pesos(P.tope_gratificacion))

st.title("Calculadora de Remuneraciones Chile")

tabs = st.tabs(["💰 Liquidación", "🎯 Simulador Líquido", "🏭 Libro de Remuneraciones"])

def formulario_trabajador(prefijo):
    c1, c2 = st.columns(2)
    with c1:
        nombres = st.text_input("Nombres", "Juan", key=f"{prefijo}_nombres")
        apellidos = st.text_input("Apellidos", "Pérez", key=f"{prefijo}_apellidos")
        rut = st.text_input("RUT", "12.345.678-9", key=f"{prefijo}_rut")
        cargo = st.text_input("Cargo", "Administrativo", key=f"{prefijo}_cargo")
        contrato = st.selectbox("Tipo de Contrato", [t.value for t in TipoContrato], key=f"{prefijo}_contrato")
    with c2:
        afp = st.selectbox("AFP", list(P.afps), key=f"{prefijo}_afp",
                           format_func=lambda c: f"{P.afps[c].get('nombre', c)} ({P.afps[c]['comision']}%)")
        salud = st.selectbox("Salud", list(P.instituciones_salud), key=f"{prefijo}_salud",
                             format_func=lambda c: P.instituciones_salud[c].get('nombre', c))
        plan_uf = st.number_input("Plan Isapre (UF)", 0.0, step=0.1, key=f"{prefijo}_plan") if P.instituciones_salud[salud].get("isapre") else 0.0
        cargas = st.number_input("Cargas Familiares", 0, 20, 0, key=f"{prefijo}_cargas")
        grat = st.checkbox("Gratificación Art. 50 (25% con tope)", True, key=f"{prefijo}_grat")
    return dict(nombres=nombres, apellidos=apellidos, rut=rut, cargo=cargo, tipo_contrato=contrato,
                codigo_afp=afp, codigo_salud=salud, plan_isapre_uf=plan_uf, cargas_familiares=cargas,
                gratificacion_legal=grat)

# --- TAB 1: LIQUIDACIÓN ---
with tabs[0]:
    with st.expander("📘 Guía de Uso: Liquidación", expanded=False):
        st.markdown("""
        Calcula la liquidación mensual completa: sueldo proporcional, gratificación legal,
        AFP, salud, seguro de cesantía e impuesto único. Descarga el comprobante en PDF.
        """)

    datos = formulario_trabajador("liq")
    c1, c2, c3 = st.columns(3)
    with c1:
        sueldo_base = st.number_input("Sueldo Base", min_value=0, value=800000, step=10000)
        dias = st.number_input("Días Trabajados", 0, 31, 30)
        horas_extra = st.number_input("Horas Extra", 0.0, step=1.0)
    with c2:
        bonos = st.number_input("Bonos", min_value=0, value=0, step=10000)
        comisiones = st.number_input("Comisiones", min_value=0, value=0, step=10000)
        colacion = st.number_input("Colación", min_value=0, value=30000, step=5000)
        movilizacion = st.number_input("Movilización", min_value=0, value=30000, step=5000)
    with c3:
        prestamos = st.number_input("Préstamos", min_value=0, value=0, step=10000)
        anticipos = st.number_input("Anticipos", min_value=0, value=0, step=10000)
        apv = st.number_input("APV", min_value=0, value=0, step=10000)

    if st.button("CALCULAR LIQUIDACIÓN"):
        try:
            res = calculadora.calcular_liquidacion(
                Trabajador(sueldo_base=int(sueldo_base), **datos),
                Periodo(anio=int(anio), mes=mes, dias_trabajados=int(dias), horas_extra=horas_extra),
                HaberesAdicionales(bonos=int(bonos), comisiones=int(comisiones),
                                   colacion=int(colacion), movilizacion=int(movilizacion)),
                DescuentosAdicionales(prestamos=int(prestamos), anticipos=int(anticipos), apv=int(apv)),
            )
        except ErrorValidacion as e:
            st.error(f"❌ {e}")
        else:
            st.session_state.ultima_liquidacion = res
            mostrar_liquidacion(res)
            st.download_button("📄 Descargar Liquidación PDF", generar_liquidacion_pdf(res, st.session_state.empresa),
                               f"Liquidacion_{res.trabajador.rut}_{anio}_{mes:02d}.pdf", "application/pdf")

# --- TAB 2: SIMULADOR LÍQUIDO → BRUTO ---
with tabs[1]:
    with st.expander("📘 Guía de Uso: Simulador", expanded=False):
        st.markdown("""
        **Ingeniería Inversa:** calcula el Sueldo Base necesario para llegar al Líquido que ofreces,
        considerando la AFP, salud y plan Isapre del trabajador. **Si el plan es caro, el base sube.**
        """)

    datos_sim = formulario_trabajador("sim")
    c1, c2 = st.columns(2)
    with c1:
        liq_obj = st.number_input("¿Qué Líquido quieres ofrecer?", min_value=0, value=800000, step=10000)
    with c2:
        no_imp = st.number_input("Total Colación + Movilización", min_value=0, value=60000, step=5000)

    if st.button("CALCULAR SUELDO BASE"):
        try:
            res = calculadora.calcular_bruto_desde_liquido(
                int(liq_obj),
                Trabajador(sueldo_base=0, **datos_sim),
                Periodo(anio=int(anio), mes=mes),
                HaberesAdicionales(colacion=int(no_imp) // 2, movilizacion=int(no_imp) - int(no_imp) // 2),
            )
        except ErrorValidacion as e:
            st.error(f"❌ {e}")
        else:
            st.success(f"Sueldo Base requerido: {formatear_pesos(res.trabajador.sueldo_base)}")
            if res.trabajador.sueldo_base < P.sueldo_minimo:
                st.warning(f"⛔ El sueldo base es inferior al mínimo legal ({formatear_pesos(P.sueldo_minimo)}).")
            mostrar_liquidacion(res)
            st.metric("Costo Empresa", formatear_pesos(res.costo_empresa))

# --- TAB 3: LIBRO DE REMUNERACIONES (MASIVO) ---
with tabs[2]:
    with st.expander("📘 Guía de Uso: Masivo", expanded=True):
        st.markdown("""
        1. **Descarga** la plantilla Excel vacía.
        2. Llénala con los datos de tus trabajadores.
        3. **Súbela** para generar el libro de remuneraciones y la centralización contable.
        """)

    st.subheader("Paso 1: Obtener Plantilla")
    st.download_button("📥 Descargar Plantilla (.xlsx)", generar_plantilla(), "Plantilla_Remuneraciones.xlsx",
                       "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")

    st.markdown("---")

    st.subheader("Paso 2: Procesar Período")
    up_file = st.file_uploader("Subir Plantilla Completa", type=['xlsx'])

    if up_file and st.button("🏭 Generar Libro de Remuneraciones"):
        try:
            liquidaciones, log = procesar_planilla(up_file, calculadora, int(anio), mes)
        except (ErrorValidacion, ValueError) as e:
            st.error(f"Error procesando el archivo: {e}")
        else:
            with st.expander("Ver Log de Auditoría"):
                st.write(log)

            if not liquidaciones:
                st.warning("No se generaron liquidaciones para el período.")
            else:
                periodo = Periodo(anio=int(anio), mes=mes)
                libro = generar_libro(liquidaciones)
                st.dataframe(libro, use_container_width=True)
                st.download_button("📊 Descargar Libro (.xlsx)",
                                   exportar_libro_excel(libro, periodo, st.session_state.empresa),
                                   f"Libro_Remuneraciones_{anio}_{mes:02d}.xlsx",
                                   "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
                try:
                    previred = generar_archivo_previred(liquidaciones, periodo)
                except ErrorValidacion as e:
                    st.warning(f"Archivo Previred no disponible: {e}")
                else:
                    st.download_button("🏛️ Descargar Archivo Previred (.txt)", previred.encode("utf-8"),
                                       f"previred_{mes:02d}{anio}.txt", "text/plain")

                st.subheader("Centralización Contable")
                st.dataframe(pd.DataFrame(generar_centralizacion(liquidaciones, periodo)), use_container_width=True)
