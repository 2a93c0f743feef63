from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Mapping, Optional

from .models import NavigationTarget, ReportRequest, TableLayout, Waypoint
from .portal.selectors import GridScreenSelectors, LoginSelectors, ReportScreenSelectors


@dataclass(frozen=True)
class PortalProfile:
    """
    Everything needed to drive one portal: login form, the waypoints to the working view, and either a
    report screen (download flow) or a results grid (extraction flow).
    """

    slug: str
    display_name: str
    flow: Literal["reports", "extraction"]
    env_prefix: str
    login: LoginSelectors
    navigation: NavigationTarget
    report_screen: Optional[ReportScreenSelectors] = None
    grid_screen: Optional[GridScreenSelectors] = None
    layout: Optional[TableLayout] = None
    default_reports: tuple[ReportRequest, ...] = ()
    default_filters: tuple[str, ...] = ()


_BSE_CONSULTAS = "/wps/myportal/portal-asesor/escritorio-comercial/consultas"

BSE = PortalProfile(
    slug="bse",
    display_name="BSE - Portal del Asesor",
    flow="reports",
    env_prefix="BSE",
    login=LoginSelectors(
        url="https://portaldelasesor.bse.com.uy",
        username_input="#userID",
        password_input="#password",
        submit="#login\\.button\\.login",
        ready_selector='a[title="Escritorio Comercial"]',
        timeout_ms=15_000,
    ),
    navigation=NavigationTarget(
        name="exportables",
        waypoints=(
            Waypoint(
                name="escritorio-comercial",
                selector='a[title="Escritorio Comercial"]',
                action="hover",
                settle_ms=2_000,
            ),
            Waypoint(
                name="consultas",
                selector=f'a.subdroplink[href="{_BSE_CONSULTAS}"]',
                action="hover",
                settle_ms=2_000,
            ),
            Waypoint(
                name="consulta-exportables",
                selector=f'a[href="{_BSE_CONSULTAS}/consulta-exportables"]',
                action="click",
                settle_ms=3_000,
            ),
        ),
    ),
    report_screen=ReportScreenSelectors(
        option_menu="label.ui-selectonemenu-label",
        option_template='li[data-label="{label}"]',
        generate_button='a.btn-boton-principal:text("Generar")',
        search_button='a.btn-boton-principal:text("Buscar")',
        status_cell='tr[data-ri="0"] td:nth-child(3)',
        ready_icon='tr[data-ri="0"] span.icon-file-excel',
    ),
    default_reports=(
        ReportRequest(label="Facturas a vencer próximos 12 días", file_stem="facturas12dias"),
        ReportRequest(label="Pólizas en condiciones de ser rehabilitadas", file_stem="rehabilitadas"),
    ),
)

PORTO = PortalProfile(
    slug="porto",
    display_name="Porto Seguro - Oficina Virtual",
    flow="extraction",
    env_prefix="PORTO",
    login=LoginSelectors(
        url="https://servicios.portoseguro.com.uy/OficinaVirtual/Paginas/frmlogin.aspx",
        username_input="#LoginControl_UserName",
        password_input="#LoginControl_Password",
        submit="#LoginControl_btoLogin",
        url_excludes=r"frmlogin",
        timeout_ms=15_000,
    ),
    navigation=NavigationTarget(
        name="deudores",
        waypoints=(
            Waypoint(name="consultas", selector="text=Consultas", action="hover", settle_ms=500),
            Waypoint(name="deudores", selector="text=Deudores", action="click", settle_ms=1_000),
            Waypoint(name="ramo", selector="#cboRamo", action="select", option_label="Todos"),
        ),
    ),
    grid_screen=GridScreenSelectors(
        filter_select="#cboAtraso",
        submit_button="#Button1",
        grid="#gridDeudores",
        rows="#gridDeudores tbody tr",
    ),
    layout=TableLayout(
        columns={
            "policy": 0,
            "name": 3,
            "currency": 5,
            "amount": 6,
            "installments": 7,
            "coverage_end": 9,
            "product": 10,
        },
        sentinel="No tiene deudores que cumplan esas condiciones",
        min_columns=11,
    ),
    default_filters=(
        "Anuladas por falta de pago",
        "Más de 90 días",
        "61 a 90 días",
        "31 a 60 días",
        "21 a 30 días",
        "5 a 20 días",
    ),
)


KNOWN_PORTALS: Mapping[str, PortalProfile] = {
    BSE.slug: BSE,
    PORTO.slug: PORTO,
}


def get_portal(slug: str) -> PortalProfile:
    key = (slug or "").strip().lower()
    try:
        return KNOWN_PORTALS[key]
    except KeyError:
        known = ", ".join(sorted(KNOWN_PORTALS))
        raise ValueError(f"Unknown portal {slug!r} (known: {known})") from None
