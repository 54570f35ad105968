import math

import pytest

from scalargrad.engine import backward, collect_nodes, topological_sort, zero_grad
from scalargrad.node import Node
from scalargrad.ops import add, multiply, tanh


@pytest.fixture
def worked_example(graph):
    a = Node(2.0, label="a")
    b = Node(-3.0, label="b")
    c = Node(10.0, label="c")
    d = multiply(a, b, label="d")
    e = add(d, c, label="e")
    f = Node(-2.0, label="f")
    g = multiply(e, f, label="g")
    h = tanh(g, label="h")
    return dict(a=a, b=b, c=c, d=d, e=e, f=f, g=g, h=h)


def _grads(nodes):
    return {name: node.grad for name, node in nodes.items()}


def test_add_gradients(graph):
    a, b = Node(4.0), Node(-1.0)
    out = add(a, b)
    backward(out)
    assert out.grad == 1.0
    assert a.grad == 1.0
    assert b.grad == 1.0


def test_multiply_gradients(graph):
    a, b = Node(4.0), Node(-1.5)
    backward(multiply(a, b))
    assert a.grad == -1.5
    assert b.grad == 4.0


def test_diamond_accumulates_both_paths(graph):
    a, b = Node(3.0), Node(-2.0)
    d = multiply(a, b)
    e = add(d, a)
    backward(e)
    assert a.grad == -2.0 + 1.0
    assert b.grad == 3.0


def test_same_operand_twice(graph):
    a = Node(3.0)
    backward(a * a)
    assert a.grad == 6.0


def test_tanh_gradient(graph):
    a = Node(0.7)
    out = tanh(a)
    assert out.data == math.tanh(0.7)
    backward(out)
    assert a.grad == pytest.approx(1 - math.tanh(0.7) ** 2)


def test_worked_example(worked_example):
    n = worked_example
    assert [n[k].data for k in "defg"] == [-6.0, 4.0, -2.0, -8.0]
    assert n["h"].data == pytest.approx(math.tanh(-8.0))

    n["h"].backward()

    g_grad = 1 - math.tanh(-8.0) ** 2
    assert n["h"].grad == 1.0
    assert n["g"].grad == pytest.approx(g_grad)
    assert n["f"].grad == pytest.approx(4.0 * g_grad)
    assert n["e"].grad == pytest.approx(-2.0 * g_grad)
    assert n["c"].grad == n["e"].grad
    assert n["d"].grad == n["e"].grad
    assert n["a"].grad == pytest.approx(n["b"].data * n["d"].grad)
    assert n["b"].grad == pytest.approx(n["a"].data * n["d"].grad)


def test_backward_twice_doubles_every_gradient(worked_example):
    worked_example["h"].backward()
    first = _grads(worked_example)

    worked_example["h"].backward()
    second = _grads(worked_example)

    assert second == pytest.approx({k: 2 * v for k, v in first.items()})


def test_resetting_leaves_reproduces_first_pass(worked_example):
    leaves = [n for n in worked_example.values() if n.is_leaf]
    h = worked_example["h"]

    h.backward()
    first = {n.label: n.grad for n in leaves}

    for leaf in leaves:
        leaf.grad = 0.0
    h.backward()

    assert {n.label: n.grad for n in leaves} == first


def test_zero_grad_clears_every_reachable_node(worked_example):
    h = worked_example["h"]
    h.backward()
    zero_grad(h)
    assert all(g == 0.0 for g in _grads(worked_example).values())

    h.backward()
    h.zero_grad()
    assert all(g == 0.0 for g in _grads(worked_example).values())


def test_backward_does_not_touch_unrelated_nodes(graph):
    a, b = Node(1.0), Node(2.0)
    unrelated = Node(5.0)
    unrelated.grad = 0.25
    backward(a * b)
    assert unrelated.grad == 0.25


def test_backward_from_intermediate_node(worked_example):
    worked_example["e"].backward()
    assert worked_example["e"].grad == 1.0
    assert worked_example["a"].grad == -3.0
    assert worked_example["f"].grad == 0.0
    assert worked_example["h"].grad == 0.0


def test_topological_sort_puts_operands_first(worked_example):
    order = topological_sort(worked_example["h"])
    position = {node: i for i, node in enumerate(order)}
    assert len(order) == len(worked_example)
    assert order[-1] is worked_example["h"]
    for node in order:
        for operand in node.operands:
            assert position[operand] < position[node]


def test_topological_sort_visits_shared_operands_once(graph):
    a = Node(1.0)
    b = a * a + a
    assert topological_sort(b).count(a) == 1


def test_collect_nodes(worked_example):
    assert collect_nodes(worked_example["h"]) == set(worked_example.values())
    assert collect_nodes(worked_example["c"]) == {worked_example["c"]}


def test_matches_torch_on_mixed_expression(graph):
    torch = pytest.importorskip("torch")

    x = Node(-4.0)
    y = Node(2.5)
    z = 2 * x + 2 + x
    q = z.tanh() + z * x
    h = (q / y) ** 2
    r = h + (1 - y).exp() - x / (y + 3)
    r.backward()

    xt = torch.tensor(-4.0, dtype=torch.double, requires_grad=True)
    yt = torch.tensor(2.5, dtype=torch.double, requires_grad=True)
    zt = 2 * xt + 2 + xt
    qt = zt.tanh() + zt * xt
    ht = (qt / yt) ** 2
    rt = ht + (1 - yt).exp() - xt / (yt + 3)
    rt.backward()

    assert r.data == pytest.approx(rt.item())
    assert x.grad == pytest.approx(xt.grad.item())
    assert y.grad == pytest.approx(yt.grad.item())


def test_root_seed_accumulates_across_passes(graph):
    a, b = Node(2.0), Node(5.0)
    out = multiply(a, b)
    backward(out)
    backward(out)
    assert out.grad == 2.0
    assert (a.grad, b.grad) == (10.0, 4.0)


def _add_chain(length):
    x = Node(0.0)
    for _ in range(length):
        x = x + 1.0
    return x


def test_shallow_chain_completes(graph):
    x = _add_chain(200)
    backward(x)
    assert x.data == 200.0
    assert x.grad == 1.0


def test_chain_deeper_than_recursion_limit_raises(graph):
    x = _add_chain(3000)
    with pytest.raises(RecursionError):
        backward(x)
