"""
Unit tests for curriculum loading.
"""

import json

import pytest

from masterycore.core.curriculum import Curriculum, Domain, default_curriculum, load_curriculum
from masterycore.core.models import CurriculumError


class TestBundledCurriculum:
    def test_security_plus_layout(self):
        curriculum = default_curriculum()
        assert curriculum.domain_ids == ["1.0", "2.0", "3.0", "4.0", "5.0"]
        assert len(curriculum) == 60
        assert all(len(curriculum.topics_in(d)) == 12 for d in curriculum.domain_ids)

    def test_topic_lookup(self):
        curriculum = default_curriculum()
        assert "Hashing" in curriculum
        assert curriculum.domain_of("Confidentiality, Integrity, and Availability (CIA)") == "1.0"
        assert curriculum.domain_of("Not a topic") is None


class TestCurriculumConstruction:
    def test_from_mapping(self, small_curriculum):
        assert small_curriculum.domain_ids == ["A", "B", "C"]
        assert small_curriculum.topics == ["a1", "a2", "b1", "b2", "c1"]
        assert small_curriculum.domain_of("b2") == "B"
        assert list(small_curriculum) == small_curriculum.topics
        assert small_curriculum.topics_in("missing") == []

    def test_topic_in_two_domains_rejected(self):
        with pytest.raises(CurriculumError):
            Curriculum.from_mapping({"A": ["x"], "B": ["x"]})

    def test_duplicate_domain_rejected(self):
        with pytest.raises(CurriculumError):
            Curriculum([Domain("A", "A", ("x",)), Domain("A", "A", ("y",))])

    def test_empty_rejected(self):
        with pytest.raises(CurriculumError):
            Curriculum.from_mapping({})
        with pytest.raises(CurriculumError):
            Curriculum.from_mapping({"A": []})

    def test_malformed_document(self):
        with pytest.raises(CurriculumError):
            Curriculum.from_dict({"domains": [{"label": "no id"}]})


class TestLoadCurriculum:
    def test_load_from_file(self, tmp_path):
        path = tmp_path / "curriculum.json"
        path.write_text(
            json.dumps(
                {
                    "name": "Networking",
                    "domains": [
                        {"id": "1", "label": "Layers", "topics": ["OSI", "TCP/IP"]},
                        {"id": "2", "topics": ["Subnetting"]},
                    ],
                }
            ),
            encoding="utf-8",
        )
        curriculum = load_curriculum(path)
        assert curriculum.name == "Networking"
        assert curriculum.domains[1].label == "2"
        assert len(curriculum) == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(CurriculumError):
            load_curriculum(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CurriculumError):
            load_curriculum(path)
