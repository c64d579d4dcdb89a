"""Group shares by server so one reachability probe serves every share on it."""

from typing import Dict, List, Tuple

from netdrive.models import ServerGroup, ShareSpec


def group_by_server(specs: List[ShareSpec]) -> List[ServerGroup]:
    """Partition *specs* by ``(server_key, port)``.

    Groups appear in first-seen order; members keep their relative order.
    """
    groups: Dict[Tuple[str, int], ServerGroup] = {}
    for spec in specs:
        key = (spec.target.server_key, spec.target.port)
        group = groups.get(key)
        if group is None:
            group = ServerGroup(server_key=key[0], port=key[1])
            groups[key] = group
        group.members.append(spec)
    return list(groups.values())
