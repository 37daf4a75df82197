"""vcf-site-finalizer: finalize merged multi-sample gVCF sites into joint calls."""

__version__ = "0.1.0"
