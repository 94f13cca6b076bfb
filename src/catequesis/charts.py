# src/catequesis/charts.py
from typing import List

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from catequesis.models import MonthlyPoint


def create_participation_chart(points: List[MonthlyPoint], filename: str, title: str = None):
    """
    Gráfico de línea de la participación mensual (0-100 %) y lo guarda como PNG.
    :param points: Serie de `monthly_participation` (ya ordenada Sep -> Ago).
    :param filename: Ruta del fichero de salida, p. ej. "participacion.png".
    :param title: (Opcional) Título del gráfico.
    """
    fig, ax = plt.subplots(figsize=(6, 3))
    x = [p.label for p in points]
    y = [p.participation for p in points]
    ax.fill_between(range(len(x)), y, color='#6366f1', alpha=0.15)
    ax.plot(range(len(x)), y, marker='o', color='#4f46e5')
    ax.set_xticks(range(len(x)))
    ax.set_xticklabels(x)
    ax.set_ylim(0, 100)
    ax.set_title(title or 'Participación mensual')
    ax.set_ylabel('%')
    ax.grid(True, linestyle=':')
    fig.tight_layout()
    fig.savefig(filename, bbox_inches="tight")
    plt.close(fig)
    return filename


def create_status_pie_chart(values: List[int], labels: List[str], filename: str,
                            colors: List[str] = None, subtitle: str = None):
    """
    Tarta de presentes / tarde / ausentes.
    Sin datos se guarda una imagen con "Sin datos".
    """
    total = sum(values)
    fig, ax = plt.subplots()
    if total == 0:
        ax.text(0.5, 0.5, "Sin datos", ha="center", va="center", fontsize=14)
        ax.axis("off")
    else:
        ax.pie(values, labels=labels, autopct="%1.1f%%",
               colors=colors or ['#4f46e5', '#f59e0b', '#cbd5e1'])
        ax.axis("equal")
    if subtitle:
        fig.text(0.5, 0.02, subtitle, ha="center", va="bottom", fontsize=16, fontweight='bold')
    fig.savefig(filename, bbox_inches="tight")
    plt.close(fig)
    return filename
