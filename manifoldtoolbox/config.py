"""Package-wide defaults."""

# joblib `n_jobs` used by the per-point phases, None runs sequentially
# unless a `joblib.parallel_config` context says otherwise.
N_JOBS = None

# Eigenvalues of the alignment matrix below this fraction of its spectral
# norm are null. More null directions than n_components besides the
# constant vector leave the embedding undetermined. Double precision
# eigensolvers are accurate to ~1e-16 relative, so 1e-10 leaves room for
# accumulated error while staying far below the eigenvalues of a curved
# manifold.
DEFAULT_NULL_SPACE_TOL = 1e-10

# Convergence tolerance handed to ARPACK.
DEFAULT_ARPACK_TOL = 1e-6

# Ridge of the out-of-sample reconstruction weights, relative to the trace
# of the local Gram matrix.
DEFAULT_REG = 1e-3

# `eigen_solver="auto"` switches to ARPACK above this many samples, as long
# as fewer than ARPACK_MAX_COMPONENTS eigenpairs are requested.
ARPACK_MIN_SAMPLES = 200
ARPACK_MAX_COMPONENTS = 10

# Shift-invert target of ARPACK, as a fraction of the spectral norm below
# zero. The alignment matrix is singular, so sigma must not be exactly 0.
ARPACK_SHIFT = 1e-6
