# Prediction containers
# Per-iteration predictions and the merged resample prediction

import pandas as pd


class Prediction:
    """
    Predictions of one model on a set of task rows.

    `data` has columns 'id' (original row id), 'truth', 'response' and,
    for probability learners, one 'prob.<class>' column per class level.
    """

    def __init__(self, data, task_type, predict_type='response', class_levels=None):
        self.data = data
        self.task_type = task_type
        self.predict_type = predict_type
        self.class_levels = class_levels

    @property
    def truth(self):
        return self.data['truth']

    @property
    def response(self):
        return self.data['response']

    def get_probabilities(self, cl=None):
        """Return the probability columns, or a single class column if cl is given."""
        if self.predict_type != 'prob':
            raise ValueError("Probabilities not available: learner predict_type is 'response'")
        if cl is not None:
            return self.data[f'prob.{cl}']
        return self.data[[f'prob.{c}' for c in self.class_levels]]

    def __len__(self):
        return len(self.data)

    def __repr__(self):
        return f"Prediction(n={len(self)}, type={self.task_type}, predict_type={self.predict_type})"


class ResamplePrediction(Prediction):
    """
    Predictions concatenated over all resampling iterations.

    Extra columns: 'iter' (1-based iteration), 'set' ('train' or 'test')
    and 'block' when the resample instance carries a blocking vector.
    """

    def __init__(self, data, task_type, predict_type='response', class_levels=None, instance=None):
        super().__init__(data, task_type, predict_type, class_levels)
        self.instance = instance

    def subset_set(self, which):
        """Restrict to 'train' or 'test' rows."""
        data = self.data[self.data['set'] == which].reset_index(drop=True)
        return ResamplePrediction(data, self.task_type, self.predict_type, self.class_levels, self.instance)

    def for_iteration(self, i):
        data = self.data[self.data['iter'] == i].reset_index(drop=True)
        return ResamplePrediction(data, self.task_type, self.predict_type, self.class_levels, self.instance)


def make_resample_prediction(instance, preds_test, preds_train):
    """
    Merge per-iteration predictions into one ResamplePrediction.

    Row order: iteration order, test rows before train rows, and within
    each block the row order of the iteration's index set.

    Returns None when no iteration produced any prediction.
    """
    frames = []
    template = None
    for i, (p_test, p_train) in enumerate(zip(preds_test, preds_train), start=1):
        for which, p, inds in (('test', p_test, instance.test_inds[i - 1]),
                               ('train', p_train, instance.train_inds[i - 1])):
            if p is None:
                continue
            if template is None:
                template = p
            df = p.data.copy()
            df['iter'] = i
            df['set'] = which
            if instance.blocking is not None:
                # prediction rows follow the iteration's index order
                df['block'] = instance.blocking[inds]
            frames.append(df)

    if template is None:
        return None

    data = pd.concat(frames, ignore_index=True)
    return ResamplePrediction(
        data,
        template.task_type,
        template.predict_type,
        template.class_levels,
        instance=instance,
    )
