import torch


class Assert:
    """
    Test assertions with informative failure messages, grouped in a namespace.
    """

    @staticmethod
    def eq(x, *args):
        for arg in args:
            assert x == arg, f"{x} != {arg}"

    @staticmethod
    def is_(x, y):
        assert x is y, f"{x} is not {y}"

    @staticmethod
    def incl(x, y):
        assert x in y, f"{x} not in {y}"

    @staticmethod
    def not_incl(x, y):
        assert x not in y, f"{x} in {y}"

    @staticmethod
    def all_equal(x, y):
        # Accepts tensors, numpy arrays and nested lists alike.
        x, y = torch.as_tensor(x), torch.as_tensor(y)
        assert x.shape == y.shape, f"Shape mismatch: {tuple(x.shape)} != {tuple(y.shape)}"
        if (mismatch := x != y).any():
            index = mismatch.nonzero()
            raise AssertionError(
                f"{len(index)} of {x.numel()} entries differ: {x[mismatch]} != {y[mismatch]} at {index.tolist()}"
            )

    @staticmethod
    def all_different(x, y):
        x, y = torch.as_tensor(x), torch.as_tensor(y)
        if (match := x == y).any():
            raise AssertionError(f"{int(match.sum())} of {x.numel()} entries unexpectedly match")
