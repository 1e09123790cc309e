# core/union_find.py

from collections import defaultdict
from typing import Dict, List


class UnionFind:
    """
    Disjoint-set forest over the labels 0..n-1

    find() compresses paths iteratively so long chains never hit the
    recursion limit; union() attaches the smaller tree under the larger.
    """

    def __init__(self, size: int):
        if size < 0:
            raise ValueError("size must be non-negative")
        self.parent = list(range(size))
        self.size = [1] * size

    def __len__(self) -> int:
        return len(self.parent)

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]

        # Second pass: point every node on the path straight at the root
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]

        return root

    def union(self, x: int, y: int) -> bool:
        """Merge the sets of x and y; False if they were already joined"""
        root_x = self.find(x)
        root_y = self.find(y)
        if root_x == root_y:
            return False

        if self.size[root_x] < self.size[root_y]:
            root_x, root_y = root_y, root_x

        self.parent[root_y] = root_x
        self.size[root_x] += self.size[root_y]
        return True

    def connected(self, x: int, y: int) -> bool:
        return self.find(x) == self.find(y)

    def size_of(self, x: int) -> int:
        return self.size[self.find(x)]

    def components(self, min_size: int = 1) -> List[List[int]]:
        """
        Connected components as sorted index lists

        Components are ordered by their smallest member, so the output only
        depends on which unions happened, not on their order.
        """
        by_root: Dict[int, List[int]] = defaultdict(list)
        for index in range(len(self.parent)):
            by_root[self.find(index)].append(index)

        return sorted(
            (members for members in by_root.values() if len(members) >= min_size),
            key=lambda members: members[0]
        )
