"""基组交换文件：外部本征求解步骤输出的 JSON（参数、模型、态）。

文件结构::

    {
      "parameters": {"species": "Yb174", "spin": 0.0, "mass": ..., "dipole_const": ...},
      "models": [{"name": ..., "parity": ..., "f": ..., "scheme": "LS", "core": [...]}],
      "states": [{"model": 0, "energy": ..., "nu": ..., "parity": ..., "f": ...,
                  "coefficients": [...], "channels": [{...}, ...]}]
    }

模型的 ``nu`` 区间缺省时从名称解析。
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping

from mqdt_database.basis.channels import channel_from_dict, channel_to_dict
from mqdt_database.basis.models import Model
from mqdt_database.basis.states import BasisArray, BasisState, Parameters


def _model_from_dict(data: Mapping[str, Any]) -> Model:
    model = Model.from_name(
        str(data["name"]),
        parity=int(data["parity"]),
        f=float(data["f"]),
        scheme=data["scheme"],
        core=data["core"],
    )
    if "nu_min" in data or "nu_max" in data:
        model = Model(
            name=model.name,
            parity=model.parity,
            f=model.f,
            scheme=model.scheme,
            core=model.core,
            nu_min=float(data.get("nu_min", model.nu_min)),
            nu_max=float(data.get("nu_max", model.nu_max)),
        )
    return model


def _model_to_dict(model: Model) -> Dict[str, Any]:
    return {
        "name": model.name,
        "parity": model.parity,
        "f": model.f,
        "scheme": model.scheme.value,
        "core": list(model.core),
        "nu_min": model.nu_min,
        "nu_max": model.nu_max,
    }


def basis_from_dict(payload: Mapping[str, Any]) -> BasisArray:
    try:
        parameters = Parameters(**payload["parameters"])
        models = [_model_from_dict(item) for item in payload["models"]]
        raw_states = payload["states"]
    except (KeyError, TypeError) as err:
        raise ValueError(f"基组文件缺少必要字段: {err}") from err

    states: List[BasisState] = []
    for position, item in enumerate(raw_states):
        try:
            model = models[int(item["model"])]
            channels = [channel_from_dict(channel, model.scheme)
                        for channel in item["channels"]]
            states.append(BasisState(
                channels=channels,
                coefficients=item["coefficients"],
                energy=float(item["energy"]),
                nu=float(item["nu"]),
                parity=int(item.get("parity", model.parity)),
                f=float(item.get("f", model.f)),
                model=model,
            ))
        except (KeyError, IndexError, TypeError) as err:
            raise ValueError(f"第 {position} 个态的记录无效: {err}") from err
    return BasisArray.from_states(states, parameters)


def basis_to_dict(basis: BasisArray) -> Dict[str, Any]:
    models: List[Model] = []
    model_index: Dict[Model, int] = {}
    states: List[Dict[str, Any]] = []
    for state in basis:
        if state.model not in model_index:
            model_index[state.model] = len(models)
            models.append(state.model)
        states.append({
            "model": model_index[state.model],
            "energy": state.energy,
            "nu": state.nu,
            "parity": state.parity,
            "f": state.f,
            "coefficients": list(state.coefficients),
            "channels": [channel_to_dict(channel) for channel in state.channels],
        })
    parameters = basis.parameters
    return {
        "parameters": {
            "species": parameters.species,
            "spin": parameters.spin,
            "mass": parameters.mass,
            "dipole_const": parameters.dipole_const,
        },
        "models": [_model_to_dict(model) for model in models],
        "states": states,
    }


def load_basis(path: Path) -> BasisArray:
    with Path(path).open("r", encoding="utf-8") as handle:
        try:
            payload = json.load(handle)
        except json.JSONDecodeError as err:
            raise ValueError(f"无法解析基组文件 {path}: {err}") from err
    return basis_from_dict(payload)


def dump_basis(basis: BasisArray, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(basis_to_dict(basis), handle, ensure_ascii=False, indent=2)
    return path
