import pytest

from catequesis.data import snapshot_from_dict

TODAY = "2025-03-15"

RAW_SNAPSHOT = {
    "classDays": ["2024-06-01", "2024-10-05", "2025-03-08", "2025-04-05"],
    "groups": [
        {"id": "g1", "name": "Confirmación", "catechistIds": ["u1"]},
        {"id": "g2", "name": "Poscomunión", "catechistIds": []},
    ],
    "events": [
        {"id": "e1", "title": "Inmaculada", "date": "2024-12-08"},
        {"id": "e2", "title": "Candelaria", "date": "2025-02-02"},
        {"id": "e3", "title": "Romería", "date": "2025-05-01"},
    ],
    "students": [
        {
            "id": "s1", "name": "José Pérez", "groupId": "g1", "school": "San José",
            "parentEmail": "padres@example.com",
            "attendanceHistory": [
                {"date": "2024-10-05", "catechism": "present", "mass": "present"},
                {"date": "2025-03-08", "catechism": "late", "mass": "absent"},
            ],
        },
        {"id": "s2", "name": "Ana", "groupId": None, "school": "", "attendanceHistory": []},
    ],
    "users": [
        {
            "id": "u1", "name": "María Núñez", "email": "m@example.es", "role": "catechist",
            "assignedGroupId": "g1",
            "attendanceHistory": [
                {"date": "2024-10-05", "type": "class", "catechism": "present", "mass": "present"},
                {"date": "2025-03-08", "type": "class", "catechism": "present", "mass": "late"},
                {"date": "2024-12-08", "type": "event", "refId": "e1", "status": "present"},
                {"date": "2025-02-02", "type": "event", "refId": "e2", "status": "late"},
            ],
        },
        {"id": "u2", "name": "Coordinación", "email": "c@example.es", "role": "coordinator"},
    ],
}


@pytest.fixture
def snapshot():
    return snapshot_from_dict(RAW_SNAPSHOT)


@pytest.fixture
def raw_snapshot():
    return RAW_SNAPSHOT
