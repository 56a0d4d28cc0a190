import unittest

from beam_core.config import NodeDescriptor
from beam_core.errors import NoCoverageError
from beam_core.router import QueryRange, locate, route, select_current


def node(start, end, address=None, legacy=False):
    return NodeDescriptor(start, end, address or f"an-{start}:9000", legacy)


class TestRoute(unittest.TestCase):
    def setUp(self):
        self.nodes = [
            node(0, 99, legacy=True),
            node(100, 199, legacy=True),
            node(200, 0),
        ]

    def test_single_era_yields_one_segment(self):
        segments = route(QueryRange(10, 50), self.nodes)
        self.assertEqual(len(segments), 1)
        self.assertEqual((segments[0].node, segments[0].start, segments[0].end), (self.nodes[0], 10, 50))

    def test_split_at_boundary(self):
        print("\nTesting Router: split at era boundary")
        nodes = [node(0, 99), node(100, 0)]
        segments = route(QueryRange(50, 150), nodes)
        self.assertEqual([(s.start, s.end) for s in segments], [(50, 99), (100, 150)])
        self.assertEqual([s.node for s in segments], nodes)
        print("  -> [50,150] split into [50,99] and [100,150]")

    def test_segments_are_contiguous_and_cover_range(self):
        for start, end in [(0, 0), (0, 500), (99, 100), (150, 210), (199, 200), (250, 10000)]:
            segments = route(QueryRange(start, end), self.nodes)
            self.assertEqual(segments[0].start, start)
            self.assertEqual(segments[-1].end, end)
            for previous, current in zip(segments, segments[1:]):
                self.assertEqual(previous.end + 1, current.start)
            for segment in segments:
                self.assertTrue(segment.node.covers(segment.start))
                self.assertTrue(segment.node.covers(segment.end))

    def test_one_segment_per_era(self):
        segments = route(QueryRange(50, 250), self.nodes)
        self.assertEqual([(s.start, s.end) for s in segments], [(50, 99), (100, 199), (200, 250)])

    def test_unbounded_node_takes_rest_of_range(self):
        segments = route(QueryRange(300, 10 ** 9), self.nodes)
        self.assertEqual(len(segments), 1)
        self.assertEqual(segments[0].end, 10 ** 9)

    def test_overlap_last_listed_wins(self):
        print("\nTesting Router: overlapping entries")
        first, second = node(0, 100, "first:9000"), node(50, 150, "second:9000")
        self.assertIs(locate(75, [first, second]), second)
        segments = route(QueryRange(75, 75), [first, second])
        self.assertIs(segments[0].node, second)
        print("  -> height 75 routed to the later entry")

    def test_below_lowest_start_raises(self):
        with self.assertRaises(NoCoverageError) as cm:
            route(QueryRange(5, 20), [node(10, 0)])
        self.assertEqual(cm.exception.height, 5)

    def test_above_highest_bounded_end_raises(self):
        nodes = [node(0, 99), node(100, 199)]
        with self.assertRaises(NoCoverageError) as cm:
            route(QueryRange(150, 250), nodes)
        self.assertEqual(cm.exception.height, 200)

    def test_gap_raises_at_first_uncovered_height(self):
        with self.assertRaises(NoCoverageError) as cm:
            route(QueryRange(0, 300), [node(0, 99), node(200, 0)])
        self.assertEqual(cm.exception.height, 100)

    def test_empty_directory_raises(self):
        with self.assertRaises(NoCoverageError):
            route(QueryRange(0, 0), [])


class TestQueryRange(unittest.TestCase):
    def test_rejects_inverted_range(self):
        with self.assertRaises(ValueError):
            QueryRange(10, 9)

    def test_rejects_negative_heights(self):
        with self.assertRaises(ValueError):
            QueryRange(-1, 9)

    def test_rejects_heights_beyond_uint64(self):
        print("\nTesting QueryRange: uint64 bound")
        with self.assertRaises(ValueError):
            QueryRange(0, 2 ** 64)
        with self.assertRaises(ValueError):
            QueryRange(2 ** 64, 2 ** 64)
        self.assertEqual(QueryRange(0, 2 ** 64 - 1).end, 2 ** 64 - 1)
        print("  -> end above 2**64-1 rejected, 2**64-1 accepted")


class TestSelectCurrent(unittest.TestCase):
    def test_greatest_start_wins_regardless_of_order(self):
        print("\nTesting Epoch Selector")
        a, b, c = node(0, 499), node(500, 999), node(1000, 0)
        for ordering in ([a, b, c], [c, b, a], [b, c, a], [a, c, b]):
            self.assertIs(select_current(ordering), c)
        print("  -> start height 1000 selected for every ordering")

    def test_tie_keeps_first_encountered(self):
        first, second = node(100, 0, "first:9000"), node(100, 0, "second:9000")
        self.assertIs(select_current([first, second]), first)

    def test_empty_directory_raises(self):
        with self.assertRaises(NoCoverageError) as cm:
            select_current([])
        self.assertIsNone(cm.exception.height)


if __name__ == '__main__':
    unittest.main()
