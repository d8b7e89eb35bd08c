"""Work items: the case aggregate, its facade and test factories."""