import math
from fractions import Fraction
from typing import Optional, Tuple

from uploadkit.domain.errors import ConfigError
from uploadkit.domain.models import CropBox, Dimensions

AUTO = -1  # "derivar de la otra dimensión"


def _check_target(name: str, value: int) -> None:
    if value != AUTO and value <= 0:
        raise ConfigError(f"Dimensión '{name}' inválida: {value} (use un entero positivo o -1)")


def _check_source(source: Dimensions) -> None:
    if source.width <= 0 or source.height <= 0:
        raise ConfigError(f"Dimensiones de origen inválidas: {source}")


class GeometryCalculator:

    @staticmethod
    def resize_dimensions(source: Dimensions, target_width: int = AUTO, target_height: int = AUTO,
                          proportional: bool = True, clamp_to_source: bool = True) -> Dimensions:
        """
        Calcula el tamaño destino de un redimensionado.

        - -1 en una dimensión la deriva de la otra manteniendo la relación de aspecto
        - clamp_to_source: nunca se agranda por encima del original
        - proporcional con ambas dimensiones: encaja dentro de la caja (nunca recorta)
        """
        _check_source(source)
        _check_target("width", target_width)
        _check_target("height", target_height)

        orig_width, orig_height = source.width, source.height

        # Usar las dimensiones originales si las pedidas son excesivas
        if clamp_to_source:
            target_width = min(target_width, orig_width)
            target_height = min(target_height, orig_height)

        if proportional:
            if target_width == AUTO and target_height == AUTO:
                factor = Fraction(1)
            elif target_width == AUTO:
                factor = Fraction(target_height, orig_height)
            elif target_height == AUTO:
                factor = Fraction(target_width, orig_width)
            else:
                factor = min(Fraction(target_width, orig_width), Fraction(target_height, orig_height))

            new_width = math.floor(orig_width * factor)
            new_height = math.floor(orig_height * factor)
        else:
            new_width = target_width if target_width != AUTO else orig_width
            new_height = target_height if target_height != AUTO else orig_height

        # Un lienzo de 0px no se puede crear
        return Dimensions(width=max(new_width, 1), height=max(new_height, 1))

    @staticmethod
    def crop_box(source: Dimensions, width: int, height: Optional[int] = None,
                 proportional: bool = False, origin: Optional[Tuple[int, int]] = None) -> CropBox:
        """
        Calcula la ventana de recorte sobre la imagen fuente.

        En modo proporcional la ventana es 0.5 * max(width, height) en ambos ejes,
        pensado para miniaturas cuadradas; el lienzo final sigue siendo width x height.
        Sin origen explícito la ventana queda centrada. Un origen explícito se usa tal cual.
        """
        _check_source(source)

        # Recortes cuadrados
        if height is None:
            height = width

        if width <= 0 or height <= 0:
            raise ConfigError(f"Dimensiones de recorte inválidas: {width}x{height}")

        if proportional:
            factor = max(width, height)
            window_width = window_height = max(int(0.5 * factor), 1)
        else:
            window_width, window_height = width, height

        if origin is None:
            x = (source.width - window_width) // 2
            y = (source.height - window_height) // 2
        else:
            x, y = origin

        return CropBox(
            x=x, y=y,
            width=width, height=height,
            window_width=window_width, window_height=window_height,
        )
