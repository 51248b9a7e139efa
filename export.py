import csv
from datetime import date
from io import StringIO
from typing import Iterable, List, Optional

from schemas import Supervision, Teacher

HEADER = [
    "Nama", "Unit", "Kelas", "Mata Pelajaran", "Jabatan",
    "Tipe Supervisi", "Tanggal", "Nilai", "Grade", "Catatan",
]


def export_filename(today: Optional[date] = None) -> str:
    return f"daftar_guru_supervisi_{(today or date.today()).isoformat()}.csv"


def export_teachers_csv(
    teachers: Iterable[Teacher],
    admin: List[Supervision],
    kbm: List[Supervision],
    classic: List[Supervision],
) -> str:
    """One row per supervision; a teacher without any gets a single blank row."""
    output = StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL)
    writer.writerow(HEADER)
    for t in teachers:
        profile = [t.name, t.unit, t.className, t.subject, t.position]
        rows = [
            [type_label, s.date, s.score, s.grade or "", s.notes]
            for type_label, items in (("Administrasi", admin), ("KBM", kbm), ("Klasik", classic))
            for s in items
            if s.teacherId == t.id
        ]
        if not rows:
            rows = [["", "", "", "", ""]]
        for r in rows:
            writer.writerow(profile + r)
    return output.getvalue()
