"""
Dependency audit report pipeline.

Raw Composer/npm/custom CVE API output flows through these modules in order:
- severity: canonical severity scale and comparisons
- findings: the normalized Finding record and run thresholds
- normalizers: raw audit JSON -> Findings
- enrichment: AI explanations and custom CVE info
- ranking: threshold filtering and severity ordering
- gates: build-fail decision
- report_assembler: render-agnostic Report structure
"""

__all__ = [
    "severity",
    "findings",
    "normalizers",
    "enrichment",
    "ranking",
    "gates",
    "report_assembler",
]
