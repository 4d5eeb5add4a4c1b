"""Quality gates: sanity checks on the grid catalog and the correspondence."""

from .models import (
    CorrespondenceMap,
    GateStatus,
    GridCatalog,
    QualityCheck,
    QualityReport,
)


def run_quality_gates(
    catalog: GridCatalog,
    correspondence: CorrespondenceMap | None = None,
) -> QualityReport:
    """Run all quality checks and return a QualityReport."""
    checks = [
        _check_floors_detected(catalog),
        _check_both_axes(catalog),
        _check_bubble_association(catalog),
        _check_floor_consistency(catalog),
    ]
    if correspondence is not None:
        checks.append(_check_correspondence_coverage(correspondence))

    if any(c.status == GateStatus.FAIL for c in checks):
        overall = GateStatus.FAIL
    elif any(c.status == GateStatus.WARN for c in checks):
        overall = GateStatus.WARN
    else:
        overall = GateStatus.PASS

    return QualityReport(overall=overall, checks=checks)


def _check_floors_detected(catalog: GridCatalog) -> QualityCheck:
    names = [f.name + (f" ({f.alias})" if f.alias else "") for f in catalog.floors]
    return QualityCheck(
        name="Floors detected",
        status=GateStatus.PASS,
        message=f"{len(catalog.floors)} floor(s) detected",
        detail=", ".join(names),
    )


def _check_both_axes(catalog: GridCatalog) -> QualityCheck:
    incomplete = [f.name for f in catalog.floors if not f.x_grids or not f.y_grids]
    if not incomplete:
        return QualityCheck(
            name="Grid axes",
            status=GateStatus.PASS,
            message="Every floor has X and Y grids",
        )
    status = GateStatus.FAIL if len(incomplete) == len(catalog.floors) else GateStatus.WARN
    return QualityCheck(
        name="Grid axes",
        status=status,
        message=f"{len(incomplete)} floor(s) missing an axis",
        detail=", ".join(incomplete),
    )


def _check_bubble_association(catalog: GridCatalog) -> QualityCheck:
    total = sum(len(f.markers) for f in catalog.floors)
    loose = [
        f"{f.name}:{m.text}"
        for f in catalog.floors
        for m in f.unclassified_markers
    ]
    if not loose:
        return QualityCheck(
            name="Bubble association",
            status=GateStatus.PASS,
            message=f"All {total} bubbles placed on a grid",
        )
    return QualityCheck(
        name="Bubble association",
        status=GateStatus.WARN,
        message=f"{len(loose)}/{total} bubbles not associated with a grid line",
        detail=", ".join(loose[:20]),
    )


def _check_floor_consistency(catalog: GridCatalog) -> QualityCheck:
    ref = catalog.reference_floor()
    ref_names = (set(ref.x_grids), set(ref.y_grids))
    differing = [
        f.name for f in catalog.floors[1:]
        if (set(f.x_grids), set(f.y_grids)) != ref_names
    ]
    if not differing:
        return QualityCheck(
            name="Floor grid consistency",
            status=GateStatus.PASS,
            message=f"All floors share the grid names of {ref.name}",
        )
    return QualityCheck(
        name="Floor grid consistency",
        status=GateStatus.WARN,
        message=f"{len(differing)} floor(s) name their grids differently from {ref.name}",
        detail="The correspondence is built on the first floor only: " + ", ".join(differing),
    )


def _check_correspondence_coverage(correspondence: CorrespondenceMap) -> QualityCheck:
    unmapped = correspondence.unmapped_x + correspondence.unmapped_y
    if not unmapped:
        return QualityCheck(
            name="Grid correspondence",
            status=GateStatus.PASS,
            message=f"{len(correspondence.x)} X and {len(correspondence.y)} Y grids mapped",
        )
    return QualityCheck(
        name="Grid correspondence",
        status=GateStatus.WARN,
        message=f"{len(unmapped)} model grid(s) unmapped; beams on them will be skipped",
        detail=", ".join(unmapped),
    )
