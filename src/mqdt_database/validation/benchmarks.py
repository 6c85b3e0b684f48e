"""
主量子数估计的参考值检查。
对每个物种族给出硬编码的 (nu, l, n) 对照，运行前打印核对结果。
"""
from typing import Dict, List, Tuple

from mqdt_database.observables.principal import estimate_n

# (nu, l_r) -> n
PRINCIPAL_N_BENCHMARKS: Dict[str, List[Tuple[float, int, int]]] = {
    "Yb": [
        (20.5, 0, 25),
        (20.5, 1, 24),
        (20.5, 2, 23),
        (20.5, 3, 22),
        (20.5, 4, 21),
        (1.5, 0, 7),
    ],
    "default": [
        (20.5, 0, 24),
        (20.5, 1, 23),
        (20.5, 2, 23),
        (20.5, 3, 21),
        (1.5, 1, 5),
    ],
}


def benchmark_family(species: str) -> str:
    return "Yb" if "Yb" in species else "default"


def validate_principal_n(species: str) -> bool:
    """逐条比对 ``estimate_n`` 与参考值，返回是否全部通过。"""
    print(f"Verifying principal quantum numbers for {species}...")
    passed = True
    for nu, l_r, expected in PRINCIPAL_N_BENCHMARKS[benchmark_family(species)]:
        n = estimate_n(nu, l_r, species)
        status = "PASS" if n == expected else "WARN"
        passed = passed and n == expected
        print(f"  [{status}] nu={nu:.2f}, l={l_r}: n={n}, Ref={expected}")
    return passed
