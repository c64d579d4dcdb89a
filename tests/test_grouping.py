"""Tests for grouping shares by server."""

from conftest import dav_spec, smb_spec

from netdrive.grouping import group_by_server


class TestGroupByServer:
    def test_partitions_preserving_order(self):
        specs = [
            smb_spec("A", "A", "nas", "one"),
            smb_spec("B", "B", "backup", "two"),
            smb_spec("C", "C", "nas", "three"),
        ]
        groups = group_by_server(specs)
        assert [g.server_key for g in groups] == ["nas", "backup"]
        assert [s.id for s in groups[0].members] == ["A", "C"]
        assert [s.id for s in groups[1].members] == ["B"]

    def test_server_key_case_insensitive(self):
        specs = [
            smb_spec("A", "A", "NAS", "one"),
            smb_spec("B", "B", "nas", "two"),
        ]
        groups = group_by_server(specs)
        assert len(groups) == 1
        assert groups[0].host == "NAS"

    def test_smb_and_webdav_on_same_host_are_separate(self):
        specs = [
            smb_spec("A", "A", "nas", "one"),
            dav_spec("B", "B", "https://nas/dav"),
        ]
        groups = group_by_server(specs)
        assert [(g.server_key, g.port) for g in groups] == [("nas", 445), ("nas", 443)]

    def test_webdav_ports_distinguish_groups(self):
        specs = [
            dav_spec("A", "A", "https://dav.example.com/a"),
            dav_spec("B", "B", "https://dav.example.com:8443/b"),
            dav_spec("C", "C", "https://dav.example.com/c"),
        ]
        groups = group_by_server(specs)
        assert len(groups) == 2
        assert [s.id for s in groups[0].members] == ["A", "C"]

    def test_every_spec_in_exactly_one_group(self):
        specs = [smb_spec(str(i), chr(ord("A") + i), f"h{i % 3}", "s") for i in range(9)]
        groups = group_by_server(specs)
        members = [s for g in groups for s in g.members]
        assert sorted(s.id for s in members) == sorted(s.id for s in specs)

    def test_empty(self):
        assert group_by_server([]) == []
