import unittest

import numpy as np
import pandas as pd
from sklearn.datasets import make_regression

from regtree.wrapper import RegressionTreeRegressor


class SklearnWrapperTest(unittest.TestCase):
    def test_sklearn_wrapper_deterministic(self) -> None:
        X, y = make_regression(n_samples=200, n_features=5, random_state=123)

        est1 = RegressionTreeRegressor(max_depth=4, min_items=5, max_workers=4)
        est1.fit(X, y)
        preds1 = est1.predict(X)

        est2 = RegressionTreeRegressor(max_depth=4, min_items=5, parallel=False)
        est2.fit(X, y)
        preds2 = est2.predict(X)

        self.assertEqual(preds1.shape, (X.shape[0],))
        self.assertTrue(np.array_equal(preds1, preds2))
        self.assertTrue(est1.get_tree().equals(est2.get_tree()))
        self.assertGreater(est1.score(X, y), 0.3)

    def test_sample_weight_changes_fit(self) -> None:
        X = np.array([[0.0], [1.0], [2.0]])
        y = np.array([0.0, 2.0, 5.0])
        est = RegressionTreeRegressor(max_depth=1, min_items=0)
        even = est.fit(X, y).predict(X)
        skewed = est.fit(X, y, sample_weight=[1.0, 1.0, 0.2]).predict(X)
        np.testing.assert_allclose(even, [1.0, 1.0, 5.0])
        np.testing.assert_allclose(skewed, [0.0, 2.5, 2.5])

    def test_dataframe_feature_names(self) -> None:
        X, y = make_regression(n_samples=60, n_features=3, random_state=0)
        df = pd.DataFrame(X, columns=["alpha", "beta", "gamma"])
        est = RegressionTreeRegressor(max_depth=2, min_items=2).fit(df, y)
        self.assertEqual(est.n_features_in_, 3)
        self.assertEqual(list(est.feature_names_in_), ["alpha", "beta", "gamma"])
        self.assertEqual(est.get_tree().feature_names, ("alpha", "beta", "gamma"))
        np.testing.assert_array_equal(est.predict(df), est.predict(X))

    def test_unfitted_predict_raises(self) -> None:
        with self.assertRaises(RuntimeError):
            RegressionTreeRegressor().predict(np.zeros((1, 2)))

    def test_get_params_round_trip(self) -> None:
        est = RegressionTreeRegressor(max_depth=3, min_items=7)
        params = est.get_params()
        self.assertEqual(params["max_depth"], 3)
        self.assertEqual(params["min_items"], 7)
        clone = RegressionTreeRegressor(**params)
        self.assertEqual(clone.get_params(), params)


if __name__ == "__main__":
    unittest.main()
