from catequesis.charts import create_participation_chart, create_status_pie_chart
from catequesis.models import MonthlyPoint


def test_participation_chart_png(tmp_path):
    fn = tmp_path / "participacion.png"
    create_participation_chart([MonthlyPoint("Sep", 80), MonthlyPoint("Oct", 65)], str(fn))
    assert fn.exists() and fn.stat().st_size > 0


def test_pie_chart_placeholder_without_data(tmp_path):
    fn = tmp_path / "tarta.png"
    create_status_pie_chart([0, 0, 0], ["Presente", "Tarde", "Ausente"], str(fn), subtitle="Catequesis")
    assert fn.exists() and fn.stat().st_size > 0


def test_pie_chart_with_data(tmp_path):
    fn = tmp_path / "tarta.png"
    create_status_pie_chart([10, 2, 3], ["Presente", "Tarde", "Ausente"], str(fn))
    assert fn.exists()
